from pathlib import Path

import pytest

from zooci.errors import DescriptorInvalid, DiscoveryAnomaly
from zooci.models.descriptor import ModelDescriptor, file_name, load_rdf


RDF_04 = """
format_version: 0.4.9
type: model
id: my-model
name: My Model
inputs:
  - name: raw
    axes: bcyx
    preprocessing:
      - name: zero_mean_unit_variance
        kwargs: {mode: per_sample, axes: xy}
outputs:
  - name: out
    axes: bcyx
    postprocessing:
      - name: sigmoid
test_inputs: [test_input.npy]
test_outputs: [test_output.npy]
weights:
  torchscript: {source: weights.pt}
"""

RDF_05 = """
format_version: 0.5.3
type: model
id: other-model
inputs:
  - id: raw
    axes: [{type: batch}, {type: channel}, {id: y, type: space}, {id: x, type: space}]
    test_tensor: {source: in.npy}
outputs:
  - id: out
    axes: [{type: batch}, {id: y}, {id: x}]
    test_tensor: {source: out.npy}
weights:
  onnx: {source: model.onnx}
attachments: [extra.txt]
"""


def test_load_rdf_v04(tmp_path: Path):
    p = tmp_path / "rdf.yaml"
    p.write_text(RDF_04)
    d = ModelDescriptor.from_mapping(load_rdf(p), p)
    assert (d.id, d.type, d.name, d.format_version) == ("my-model", "model", "My Model", "0.4.9")
    assert d.inputs[0].name == "raw" and d.inputs[0].axes == "bcyx"
    assert d.inputs[0].preprocessing[0].name == "zero_mean_unit_variance"
    assert d.inputs[0].preprocessing[0].kwargs == {"mode": "per_sample", "axes": "xy"}
    assert d.outputs[0].postprocessing[0].kwargs == {}
    assert d.test_inputs == ["test_input.npy"] and d.test_outputs == ["test_output.npy"]
    assert d.root == str(tmp_path.resolve())
    assert d.local_path is None


def test_load_rdf_v05(tmp_path: Path):
    p = tmp_path / "rdf.yaml"
    p.write_text(RDF_05)
    d = ModelDescriptor.from_mapping(load_rdf(p), p)
    assert d.inputs[0].axes == "bcyx"
    assert d.outputs[0].axes == "byx"
    assert d.test_inputs == ["in.npy"] and d.test_outputs == ["out.npy"]
    assert d.attachments == ["extra.txt"]


def test_attach_local_path_and_local_file(tmp_path: Path):
    d = ModelDescriptor.from_mapping({"id": "m", "type": "model"})
    with pytest.raises(RuntimeError):
        d.local_file("a.npy")
    d.attach_local_path(tmp_path)
    assert d.local_file("https://host/x/y/a.npy") == tmp_path / "a.npy"


def test_root_from_url_rdf_source():
    d = ModelDescriptor.from_mapping({"id": "m", "type": "model", "rdf_source": "https://host/files/rdf.yaml"})
    assert d.root == "https://host/files"


def test_invalid_yaml_is_discovery_anomaly(tmp_path: Path):
    p = tmp_path / "rdf.yaml"
    p.write_text("id: [unclosed")
    with pytest.raises(DiscoveryAnomaly):
        load_rdf(p)
    p.write_text("- just\n- a list\n")
    with pytest.raises(DiscoveryAnomaly):
        load_rdf(p)


@pytest.mark.parametrize(
    "rdf",
    [
        {"type": "model"},
        {"id": "m"},
        {"id": "m", "type": "model", "inputs": {"raw": {}}},
        {"id": "m", "type": "model", "inputs": [{"name": "raw"}]},
        {"id": "m", "type": "model", "inputs": [{"name": "raw", "axes": "bx", "preprocessing": [{"kwargs": {}}]}]},
    ],
)
def test_invalid_descriptor_content(rdf):
    with pytest.raises(DescriptorInvalid):
        ModelDescriptor.from_mapping(rdf)


def test_file_name():
    assert file_name("https://zenodo.org/api/files/abc/weights.onnx") == "weights.onnx"
    assert file_name("sub/dir/test.npy") == "test.npy"
