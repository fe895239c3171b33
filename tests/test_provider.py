from unittest import mock

import pytest

import windows_update as wu


def com_update(title, eula=True, user_input=False, reboot=0, downloaded=False):
    update = mock.Mock()
    update.Title = title
    update.Identity.UpdateID = f"id-{title}"
    update.EulaAccepted = eula
    update.EulaText = "" if eula else f"{title} terms"
    update.IsDownloaded = downloaded
    update.InstallationBehavior.CanRequestUserInput = user_input
    update.InstallationBehavior.RebootBehavior = reboot
    return update


def com_collection(updates):
    collection = mock.Mock()
    collection.Count = len(updates)
    collection.Item.side_effect = lambda i: updates[i]
    return collection


@pytest.fixture
def session():
    return mock.Mock()


@pytest.fixture
def provider(session):
    return wu.WuaUpdateProvider(session=session, collection_factory=mock.Mock)


def test_search_maps_updates(provider, session):
    raw = [com_update("KB1"), com_update("KB2", eula=False, user_input=True, reboot=2)]
    session.CreateUpdateSearcher.return_value.Search.return_value.Updates = com_collection(raw)

    items = provider.search("IsInstalled=0")

    session.CreateUpdateSearcher.return_value.Search.assert_called_once_with("IsInstalled=0")
    assert isinstance(items, tuple)
    assert [i.title for i in items] == ["KB1", "KB2"]
    assert items[0].update_id == "id-KB1"
    assert items[0].eula_text is None
    assert items[1].eula_accepted is False
    assert items[1].eula_text == "KB2 terms"
    assert items[1].requires_user_input is True
    assert items[1].reboot_behavior is wu.RebootBehavior.CAN_REQUEST_REBOOT
    assert items[1].handle is raw[1]


def test_search_failure_is_provider_error(provider, session):
    session.CreateUpdateSearcher.side_effect = OSError("0x8024402C")
    with pytest.raises(wu.ProviderError, match="0x8024402C"):
        provider.search("IsInstalled=0")


def test_accept_eula(provider):
    item = wu.UpdateItem(title="KB1", eula_accepted=False, handle=mock.Mock())
    provider.accept_eula(item)
    item.handle.AcceptEula.assert_called_once_with()
    assert item.eula_accepted is True


def test_download_refreshes_flags(provider, session):
    handles = [com_update("KB1"), com_update("KB2")]
    items = [wu.UpdateItem(title=h.Title, handle=h) for h in handles]

    def finish_download():
        handles[0].IsDownloaded = True
        return mock.Mock(ResultCode=3)

    session.CreateUpdateDownloader.return_value.Download.side_effect = finish_download
    provider.download(items)

    downloader = session.CreateUpdateDownloader.return_value
    downloader.Updates.Add.assert_has_calls([mock.call(handles[0]), mock.call(handles[1])])
    assert [i.downloaded for i in items] == [True, False]


def test_install_returns_aligned_results(provider, session):
    items = [wu.UpdateItem(title=t, handle=com_update(t)) for t in ("KB1", "KB2")]
    result = session.CreateUpdateInstaller.return_value.Install.return_value
    result.ResultCode = 3
    result.RebootRequired = True
    result.GetUpdateResult.side_effect = lambda i: mock.Mock(ResultCode=[2, 4][i])

    installation = provider.install(items)

    assert installation.result_code is wu.OperationResultCode.SUCCEEDED_WITH_ERRORS
    assert installation.reboot_required is True
    assert installation.item_results == [
        wu.OperationResultCode.SUCCEEDED,
        wu.OperationResultCode.FAILED,
    ]


def test_install_failure_is_provider_error(provider, session):
    session.CreateUpdateInstaller.return_value.Install.side_effect = RuntimeError("busy")
    with pytest.raises(wu.ProviderError, match="busy"):
        provider.install([wu.UpdateItem(title="KB1", handle=mock.Mock())])


def test_session_is_created_on_first_use(monkeypatch):
    created = []

    def unavailable(prog_id):
        created.append(prog_id)
        raise wu.ProviderError(f"Cannot create {prog_id}: class not registered")

    monkeypatch.setattr(wu, "_dispatch", unavailable)
    provider = wu.WuaUpdateProvider()
    assert created == []

    with pytest.raises(wu.ProviderError, match="class not registered"):
        provider.search("IsInstalled=0")
    assert created == ["Microsoft.Update.Session"]


def test_session_gets_client_name(monkeypatch):
    session = mock.Mock()
    monkeypatch.setattr(wu, "_dispatch", lambda prog_id: session)
    provider = wu.WuaUpdateProvider(client_name="nightly-patch")
    assert provider.session is session
    assert session.ClientApplicationID == "nightly-patch"
