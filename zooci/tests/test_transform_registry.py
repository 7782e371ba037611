import numpy as np
import pytest

from zooci.errors import ArgumentBindingError, TransformError, TransformNotFound, UnsupportedOutputType
from zooci.models.descriptor import TransformSpec
from zooci.models.tensor import Tensor
from zooci.transforms.registry import (
    TransformRegistry,
    bind_arguments,
    parse_reference,
    setter_name,
    snake_to_camel,
)


class Offset:
    """Duck-typed unit configured through setters."""

    def __init__(self):
        self.value = 0.0

    def setValue(self, value):
        self.value = float(value)

    def apply(self, tensor):
        return tensor.data + self.value

    def shift_in_place(self, tensor):
        tensor.data = tensor.data + self.value


class TwoArgSetter:
    def setValue(self, a, b):
        pass

    def apply(self, tensor):
        return tensor.data


def _tensor():
    return Tensor.build("raw", "bcyx", np.arange(8, dtype=np.float32).reshape(1, 2, 2, 2))


def test_snake_to_camel_and_setter_name():
    assert snake_to_camel("scale_range") == "ScaleRange"
    assert snake_to_camel("zero_mean_unit_variance") == "ZeroMeanUnitVariance"
    assert snake_to_camel("sigmoid") == "Sigmoid"
    assert setter_name("min_percentile") == "setMinPercentile"
    assert setter_name("gain") == "setGain"


def test_parse_reference_rules():
    r = parse_reference("my.pkg.Foo::bar")
    assert (r.reference, r.operation, r.builtin) == ("my.pkg.Foo", "bar", False)
    r = parse_reference("my.pkg.Foo")
    assert (r.reference, r.operation, r.builtin) == ("my.pkg.Foo", "apply", False)
    r = parse_reference("scale_range")
    assert (r.reference, r.operation, r.builtin) == ("ScaleRangeTransformation", "apply", True)


def test_builtin_is_created_and_configured():
    reg = TransformRegistry()
    bound = reg.create(TransformSpec("scale_linear", {"gain": 2.0, "offset": 1.0}))
    out = bound.execute(_tensor())
    assert list(out) == ["raw"]
    np.testing.assert_allclose(out["raw"].data, np.arange(8).reshape(1, 2, 2, 2) * 2.0 + 1.0)
    assert out["raw"].axes == "bcyx"


def test_builtin_rejects_unknown_argument():
    reg = TransformRegistry()
    with pytest.raises(ArgumentBindingError):
        reg.create(TransformSpec("sigmoid", {"gain": 2.0}))


def test_unknown_builtin_raises_not_found():
    reg = TransformRegistry()
    with pytest.raises(TransformNotFound) as e:
        reg.create(TransformSpec("does_not_exist"))
    assert e.value.reference == "does_not_exist"
    assert "DoesNotExistTransformation" in str(e.value)


def test_unresolvable_qualified_reference_carries_reference():
    reg = TransformRegistry()
    with pytest.raises(TransformNotFound) as e:
        reg.create(TransformSpec("my.pkg.Foo::bar"))
    assert e.value.reference == "my.pkg.Foo::bar"
    assert "my.pkg" in str(e.value)


def test_registered_unit_bound_through_setters():
    reg = TransformRegistry()
    reg.register("ext.units.Offset", Offset)
    bound = reg.create(TransformSpec("ext.units.Offset", {"value": 3}))
    assert bound.unit.value == 3.0
    out = bound.execute(_tensor())
    np.testing.assert_allclose(out["raw"].data.ravel(), np.arange(8) + 3.0)


def test_register_as_decorator():
    reg = TransformRegistry()

    @reg.register("ext.units.Double")
    class Double:
        def apply(self, tensor):
            return tensor.data * 2

    assert "ext.units.Double" in reg.names()
    out = reg.create(TransformSpec("ext.units.Double")).execute(_tensor())
    assert out["raw"].data[0, 1, 1, 1] == 14


def test_member_operation_returning_none_is_in_place():
    reg = TransformRegistry()
    reg.register("ext.units.Offset", Offset)
    t = _tensor()
    out = reg.create(TransformSpec("ext.units.Offset::shift_in_place", {"value": 1})).execute(t)
    assert out["raw"] is t
    assert t.data[0, 0, 0, 0] == 1.0


def test_missing_operation_is_not_found():
    reg = TransformRegistry()
    reg.register("ext.units.Offset", Offset)
    with pytest.raises(TransformNotFound):
        reg.create(TransformSpec("ext.units.Offset::nope"))


def test_missing_setter_names_the_setter():
    with pytest.raises(ArgumentBindingError) as e:
        bind_arguments(Offset(), {"min_percentile": 1})
    assert "setMinPercentile" in str(e.value)


def test_setter_with_two_parameters_is_rejected():
    with pytest.raises(ArgumentBindingError) as e:
        bind_arguments(TwoArgSetter(), {"value": 1})
    assert "setValue" in str(e.value)


def test_qualified_reference_is_imported(tmp_path, monkeypatch):
    (tmp_path / "my_ext_transforms.py").write_text(
        "class Negate:\n"
        "    def apply(self, tensor):\n"
        "        return -tensor.data\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    out = TransformRegistry().create(TransformSpec("my_ext_transforms.Negate")).execute(_tensor())
    assert out["raw"].data[0, 0, 0, 1] == -1.0


def test_mapping_output_replaces_tensors():
    reg = TransformRegistry()

    @reg.register("ext.units.Split")
    class Split:
        def apply(self, tensor):
            return {"raw": tensor.data[:, :1], "extra": tensor.data[:, 1:]}

    others = {"raw": _tensor(), "extra": Tensor.build("extra", "bcyx", np.zeros((1, 1, 2, 2)))}
    out = reg.create(TransformSpec("ext.units.Split")).execute(others["raw"], others)
    assert set(out) == {"raw", "extra"}
    assert out["raw"].shape == (1, 1, 2, 2)
    assert out["extra"].data[0, 0, 0, 0] == 4.0


def test_unsupported_output_type():
    reg = TransformRegistry()
    reg.register("ext.units.Bad", lambda: type("Bad", (), {"apply": lambda self, t: "text"})())
    with pytest.raises(UnsupportedOutputType):
        reg.create(TransformSpec("ext.units.Bad")).execute(_tensor())


def test_failure_inside_unit_becomes_transform_error():
    reg = TransformRegistry()
    with pytest.raises(TransformError):
        reg.create(TransformSpec("clip")).execute(_tensor())
