import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import windows_update as wu  # noqa: E402


class FakeProvider(wu.UpdateProvider):
    """Records calls; downloads everything unless told otherwise."""

    def __init__(self, updates=(), fail_on=None, not_downloadable=(), results=None):
        self.updates = tuple(updates)
        self.fail_on = fail_on
        self.not_downloadable = set(not_downloadable)
        self.results = results
        self.calls = {"search": 0, "accept_eula": 0, "download": 0, "install": 0}
        self.downloaded_batches = []
        self.installed_batches = []

    def _maybe_fail(self, stage):
        self.calls[stage] += 1
        if self.fail_on == stage:
            raise wu.ProviderError(f"{stage} exploded")

    def search(self, criteria):
        self._maybe_fail("search")
        self.criteria = criteria
        return self.updates

    def accept_eula(self, item):
        self._maybe_fail("accept_eula")
        item.eula_accepted = True

    def download(self, items):
        self._maybe_fail("download")
        self.downloaded_batches.append(list(items))
        for item in items:
            item.downloaded = item.title not in self.not_downloadable

    def install(self, items):
        self._maybe_fail("install")
        self.installed_batches.append(list(items))
        codes = self.results or [wu.OperationResultCode.SUCCEEDED] * len(items)
        return wu.InstallationResult(
            result_code=wu.OperationResultCode.SUCCEEDED,
            reboot_required=any(i.may_require_reboot for i in items),
            item_results=list(codes),
        )


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, subject, body):
        self.sent.append((subject, body))
        return True


@pytest.fixture
def run_log(tmp_path):
    log = wu.RunLog(tmp_path / "logs" / "run.log")
    yield log
    log.close()


@pytest.fixture
def read_log(run_log):
    def _read():
        if not run_log.path.exists():
            return ""
        return run_log.path.read_text(encoding="utf-8")

    return _read


@pytest.fixture
def make_workflow(run_log):
    def _make(provider, **kwargs):
        kwargs.setdefault("is_elevated", lambda: True)
        kwargs.setdefault("prompt", lambda item: pytest.fail(f"unexpected prompt for {item.title}"))
        return wu.UpdateWorkflow(provider, run_log, **kwargs)

    return _make
