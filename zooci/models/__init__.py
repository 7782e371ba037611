from .descriptor import RDF_FNAME, ModelDescriptor, TensorSpec, TransformSpec, load_rdf
from .registry import get_engine, list_engines
from .results import TestResult
from .tensor import Tensor
from .weights import WeightFormat, resolve_weight_formats

__all__ = [
    "RDF_FNAME",
    "ModelDescriptor",
    "TensorSpec",
    "TransformSpec",
    "load_rdf",
    "get_engine",
    "list_engines",
    "TestResult",
    "Tensor",
    "WeightFormat",
    "resolve_weight_formats",
]
