import numpy as np
import pytest

from zooci.errors import ArgumentBindingError
from zooci.models.tensor import Tensor
from zooci.transforms.builtin import BUILTIN_TRANSFORMS


def _make(name, **kwargs):
    return BUILTIN_TRANSFORMS[name]().configure(kwargs)


def _img(seed=0):
    rng = np.random.default_rng(seed)
    return Tensor.build("x", "bcyx", rng.normal(5.0, 3.0, size=(1, 2, 8, 8)).astype(np.float32))


def test_all_standard_names_registered():
    expected = {
        "BinarizeTransformation",
        "ClipTransformation",
        "ScaleLinearTransformation",
        "SigmoidTransformation",
        "ZeroMeanUnitVarianceTransformation",
        "FixedZeroMeanUnitVarianceTransformation",
        "ScaleRangeTransformation",
        "EnsureDtypeTransformation",
    }
    assert expected <= set(BUILTIN_TRANSFORMS)


def test_binarize_and_clip():
    t = Tensor.build("x", "bx", np.array([[0.1, 0.5, 0.9]], dtype=np.float32))
    np.testing.assert_array_equal(_make("BinarizeTransformation", threshold=0.5).apply(t), [[0.0, 0.0, 1.0]])
    np.testing.assert_allclose(_make("ClipTransformation", min=0.2, max=0.8).apply(t), [[0.2, 0.5, 0.8]])


def test_scale_linear_per_channel():
    t = Tensor.build("x", "bcx", np.ones((1, 2, 3), dtype=np.float32))
    out = _make("ScaleLinearTransformation", gain=[1.0, 2.0], offset=[0.0, 1.0]).apply(t)
    np.testing.assert_allclose(out[0, 0], [1.0, 1.0, 1.0])
    np.testing.assert_allclose(out[0, 1], [3.0, 3.0, 3.0])


def test_sigmoid_zero_is_half():
    t = Tensor.build("x", "bx", np.zeros((1, 4), dtype=np.float32))
    np.testing.assert_allclose(_make("SigmoidTransformation").apply(t), 0.5)


def test_zero_mean_unit_variance_per_sample():
    out = _make("ZeroMeanUnitVarianceTransformation", mode="per_sample", axes="yx").apply(_img())
    np.testing.assert_allclose(out.mean(axis=(2, 3)), 0.0, atol=1e-5)
    np.testing.assert_allclose(out.std(axis=(2, 3)), 1.0, atol=1e-4)


def test_zero_mean_unit_variance_fixed_needs_mean_and_std():
    with pytest.raises(ArgumentBindingError):
        _make("ZeroMeanUnitVarianceTransformation", mode="fixed").apply(_img())
    out = _make("ZeroMeanUnitVarianceTransformation", mode="fixed", mean=5.0, std=2.0, eps=0.0).apply(
        Tensor.build("x", "bx", np.array([[5.0, 9.0]], dtype=np.float32))
    )
    np.testing.assert_allclose(out, [[0.0, 2.0]])


def test_scale_range_maps_percentiles_to_unit_interval():
    out = _make("ScaleRangeTransformation", axes=["y", "x"], min_percentile=0, max_percentile=100).apply(_img())
    assert out.min() >= 0.0
    assert out.max() <= 1.0
    np.testing.assert_allclose(out.max(axis=(2, 3)), 1.0, atol=1e-4)


def test_scale_range_other_reference_tensor_rejected():
    with pytest.raises(ArgumentBindingError):
        _make("ScaleRangeTransformation", reference_tensor="other").apply(_img())


def test_ensure_dtype():
    out = _make("EnsureDtypeTransformation", dtype="uint8").apply(Tensor.build("x", "x", np.array([1.7, 2.2])))
    assert out.dtype == np.uint8


def test_input_tensor_untouched():
    t = _img()
    before = t.data.copy()
    _make("ScaleLinearTransformation", gain=3.0).apply(t)
    np.testing.assert_array_equal(t.data, before)
