from pathlib import Path

import numpy as np

from zooci.engine.backends import Engine
from zooci.engine.cache import DownloadCache
from zooci.engine.tester import ReproductionTester, Stage
from zooci.models.descriptor import ModelDescriptor
from zooci.models.results import DOWNLOAD_TEST_NAME, LOAD_TEST_NAME, REPRODUCE_TEST_NAME, TYPE_TEST_NAME
from zooci.models.weights import WeightFormat


class _Identity(Engine):
    framework = "identity"

    def _load(self, weights):
        pass

    def _run(self, arrays, outputs):
        return list(arrays)


def _rdf(pre=None, rtype="model"):
    return {
        "id": "m",
        "type": rtype,
        "inputs": [{"name": "raw", "axes": "bx", "preprocessing": pre or []}],
        "outputs": [{"name": "out", "axes": "bx"}],
        "test_inputs": ["in.npy"],
        "test_outputs": ["out.npy"],
        "weights": {"torchscript": {"source": "w.pt"}},
    }


def _model_dir(tmp_path: Path, out) -> Path:
    np.save(tmp_path / "in.npy", np.array([[1.0, 2.0]], dtype=np.float32))
    np.save(tmp_path / "out.npy", np.asarray(out, dtype=np.float32))
    (tmp_path / "w.pt").write_bytes(b"")
    return tmp_path


WF = WeightFormat(framework="torchscript", source="w.pt")


def _tester(folder: Path):
    return ReproductionTester("v", engine_factory=_Identity, downloader=lambda d: folder)


def test_four_checks_in_order(tmp_path: Path):
    tester = _tester(_model_dir(tmp_path, [[1.0, 2.0]]))
    results = tester.test_resource(_rdf(), WF, tmp_path / "rdf.yaml")
    assert [r.name for r in results] == [LOAD_TEST_NAME, TYPE_TEST_NAME, DOWNLOAD_TEST_NAME, REPRODUCE_TEST_NAME]
    assert all(r.passed for r in results)
    assert all(r.source_name == str(tmp_path / "rdf.yaml") for r in results)
    assert tester.stage is Stage.PASSED


def test_only_first_preprocessing_step_applied(tmp_path: Path):
    pre = [{"name": "scale_linear", "kwargs": {"gain": 2.0}}, {"name": "not_a_real_step"}]
    tester = _tester(_model_dir(tmp_path, [[2.0, 4.0]]))
    results = tester.test_resource(_rdf(pre), WF, tmp_path / "rdf.yaml")
    assert results[-1].passed, results[-1].error


def test_wrong_type_stops_before_download(tmp_path: Path):
    calls = []
    tester = ReproductionTester("v", engine_factory=_Identity, downloader=lambda d: calls.append(d) or tmp_path)
    results = tester.test_resource(_rdf(rtype="dataset"), WF)
    assert [r.name for r in results] == [LOAD_TEST_NAME, TYPE_TEST_NAME]
    assert results[-1].status == "failed"
    assert calls == []


def test_invalid_description_fails_load_check(tmp_path: Path):
    rdf = _rdf()
    rdf["inputs"] = [{"name": "raw"}]
    results = _tester(tmp_path).test_resource(rdf, WF)
    assert len(results) == 1
    assert results[0].name == LOAD_TEST_NAME and results[0].status == "failed"
    assert "DescriptorInvalid" in results[0].error


def test_unreadable_fixture(tmp_path: Path):
    folder = _model_dir(tmp_path, [[1.0, 2.0]])
    (folder / "out.npy").write_bytes(b"garbage")
    tester = _tester(folder)
    results = tester.test_resource(_rdf(), WF)
    assert "TestFixtureError" in results[-1].error
    assert tester.stage is Stage.FAILED


def test_shared_cache_short_circuits_downloads(tmp_path: Path):
    folder = _model_dir(tmp_path, [[1.0, 2.0]])
    calls = []

    def download(d):
        calls.append(d.id)
        return folder

    cache = DownloadCache()
    tester = ReproductionTester("v", cache=cache, engine_factory=_Identity, downloader=download)
    tester.test_resource(_rdf(), WF)
    tester.test_resource(_rdf(), WeightFormat(framework="onnx", source="w.pt"))
    assert calls == ["m"]


def test_outputs_checked_one_at_a_time(tmp_path: Path):
    np.save(tmp_path / "in.npy", np.array([[1.0, 2.0]], dtype=np.float32))
    np.save(tmp_path / "out.npy", np.array([[2.0, 3.0]], dtype=np.float32))
    np.save(tmp_path / "out2.npy", np.array([[1.0, 2.0]], dtype=np.float32))
    (tmp_path / "w.pt").write_bytes(b"")
    rdf = _rdf()
    rdf["inputs"].append({"name": "raw2", "axes": "bx"})
    rdf["outputs"].append({"name": "out2", "axes": "bx", "postprocessing": [{"name": "no_such_step"}]})
    rdf["test_inputs"] = ["in.npy", "in.npy"]
    rdf["test_outputs"] = ["out.npy", "out2.npy"]
    results = _tester(tmp_path).test_resource(rdf, WF)
    # output 0 fails before the post-processing of output 1 is looked up
    assert results[-1].status == "failed"
    assert results[-1].error.startswith("ToleranceExceeded")
    assert "output number 0" in results[-1].error


def test_stage_restarts_for_every_format(tmp_path: Path):
    tester = _tester(_model_dir(tmp_path, [[1.0, 2.0]]))
    tester.test_resource(_rdf(), WF)
    assert tester.stage is Stage.PASSED
    tester.test_resource(_rdf(rtype="dataset"), WF)
    assert tester.stage is Stage.LOADED


def test_reproduce_without_local_folder_is_download_failure(tmp_path: Path):
    _model_dir(tmp_path, [[1.0, 2.0]])
    descriptor = ModelDescriptor.from_mapping(_rdf())
    result = _tester(tmp_path).reproduce(descriptor, WF, "m")
    assert result.status == "failed"
    assert result.error.startswith("DownloadFailure")
