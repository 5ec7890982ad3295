import asyncio

import pytest

from tradd.workflow import (
    AddOptions,
    AddTorrentWorkflow,
    Blobs,
    LiveTorrent,
    LocalPaths,
    MagnetOrUrl,
    NotificationKind,
    Priority,
    TorrentBlob,
    Unspecified,
    WorkflowState,
    limit_names,
)

HEX = "abcdef0123456789abcdef0123456789abcdef01"
MAGNET = f"magnet:?xt=urn:btih:{HEX.upper()}&dn=Example&tr=http%3A%2F%2Ftracker.example%2Fannounce"
OTHER = "0123456789" * 4


def make_workflow(env, history=None, **kwargs):
    return AddTorrentWorkflow(env.capabilities(), history, **kwargs)


# =============================================================================
# Links
# =============================================================================


async def test_magnet_adds_new_torrent(env, history):
    workflow = make_workflow(env, history, options=AddOptions(download_dir="/dl"))

    assert await workflow.open(MagnetOrUrl(MAGNET)) == WorkflowState.READY
    assert workflow.descriptors[0].info_hash == HEX
    assert workflow.descriptors[0].name == "Example"
    assert workflow.existing is None
    assert workflow.selection is None

    report = await workflow.submit()

    assert workflow.state == WorkflowState.DONE
    assert workflow.descriptors == []
    assert len(env.add_requests) == 1
    request = env.add_requests[0]
    assert request.url == MAGNET
    assert request.metainfo is None
    assert request.unwanted is None
    assert request.download_dir == "/dl"
    assert [u.success for u in report.units] == [True]
    assert [(n.kind, n.title) for n in env.notifications] == [(NotificationKind.SUCCESS, "Torrent added")]
    assert history.entries == ["/dl"]


async def test_magnet_for_existing_torrent_merges_trackers(env, history):
    env.live = [LiveTorrent(id=7, hash=HEX, name="Existing")]
    workflow = make_workflow(env, history, options=AddOptions(download_dir="/dl"))

    await workflow.open(MagnetOrUrl(MAGNET))
    assert workflow.torrent_exists
    assert workflow.can_submit

    report = await workflow.submit()

    assert report.merged
    assert env.add_requests == []
    assert len(env.merge_requests) == 1
    assert env.merge_requests[0].torrent_id == 7
    assert env.merge_requests[0].trackers == ["http://tracker.example/announce"]
    assert [(n.title, n.message) for n in env.notifications] == [("Trackers updated", "Existing")]
    assert history.entries == []
    assert workflow.state == WorkflowState.DONE


async def test_existing_torrent_without_trackers_cannot_submit(env):
    env.live = [LiveTorrent(id=7, hash=HEX)]
    workflow = make_workflow(env)

    await workflow.open(MagnetOrUrl(f"magnet:?xt=urn:btih:{HEX}"))

    assert workflow.state == WorkflowState.READY
    assert not workflow.can_submit
    with pytest.raises(RuntimeError):
        await workflow.submit()
    assert env.merge_requests == []


async def test_http_url_is_added_by_url(env):
    workflow = make_workflow(env)
    await workflow.open(MagnetOrUrl("https://example.com/file.torrent"))

    assert workflow.descriptors[0].info_hash == ""
    await workflow.submit()
    assert env.add_requests[0].url == "https://example.com/file.torrent"


async def test_undecodable_link_is_passed_through(env):
    workflow = make_workflow(env)
    assert await workflow.open(MagnetOrUrl("something-the-daemon-may-know")) == WorkflowState.READY
    await workflow.submit()
    assert env.add_requests[0].url == "something-the-daemon-may-know"


async def test_empty_link_cancels(env):
    workflow = make_workflow(env)
    assert await workflow.open(MagnetOrUrl("  ")) == WorkflowState.CANCELLED
    assert env.notifications == []


async def test_file_url_is_read_as_local_path(env):
    env.add_file("/tmp/my file.torrent", "mine")
    workflow = make_workflow(env)

    await workflow.open(MagnetOrUrl("file:///tmp/my%20file.torrent"))

    assert env.read_calls == ["/tmp/my file.torrent"]
    assert workflow.descriptors[0].name == "mine"


async def test_failed_merge_is_reported_and_still_closes(env):
    env.live = [LiveTorrent(id=7, hash=HEX)]
    env.merge_error = RuntimeError("boom")
    workflow = make_workflow(env, delete_added=True)

    await workflow.open(MagnetOrUrl(MAGNET))
    report = await workflow.submit()

    assert not report.merged
    assert workflow.state == WorkflowState.DONE
    assert [(n.kind, n.title, n.message) for n in env.notifications] == [
        (NotificationKind.ERROR, "Error updating trackers", "boom"),
    ]
    # Links have no source file to delete
    assert env.deleted == []


# =============================================================================
# Local files
# =============================================================================


async def test_reads_preserve_input_order(env):
    paths = ["/t/1.torrent", "/t/2.torrent", "/t/3.torrent"]
    for i, path in enumerate(paths):
        env.add_file(path, f"t{i}")
    # Later inputs finish first
    env.read_delays = {paths[0]: 0.03, paths[1]: 0.02, paths[2]: 0.0}

    workflow = make_workflow(env)
    await workflow.open(LocalPaths(paths))

    assert [d.name for d in workflow.descriptors] == ["t0", "t1", "t2"]


async def test_partial_read_failure_shrinks_batch_and_resolves(env):
    env.add_file("/t/good.torrent", "good", info_hash=OTHER, trackers=["udp://t.example:1"])
    env.read_errors["/t/bad.torrent"] = OSError("permission denied")
    env.live = [LiveTorrent(id=3, hash=OTHER, name="good")]

    workflow = make_workflow(env)
    state = await workflow.open(LocalPaths(["/t/bad.torrent", "/t/good.torrent"]))

    assert state == WorkflowState.READY
    assert [d.name for d in workflow.descriptors] == ["good"]
    errors = env.errors()
    assert len(errors) == 1
    assert errors[0].title == "Error reading torrent"
    assert "/t/bad.torrent" in errors[0].message
    # Batch of one again, so duplicate detection applies
    assert workflow.existing is not None
    assert workflow.existing.torrent.id == 3


async def test_single_read_failure_fails_workflow(env):
    env.read_errors["/t/bad.torrent"] = OSError("nope")
    workflow = make_workflow(env)

    assert await workflow.open(LocalPaths(["/t/bad.torrent"])) == WorkflowState.FAILED
    assert len(env.errors()) == 1
    with pytest.raises(RuntimeError):
        await workflow.submit()


async def test_existing_local_torrent_merges_and_deletes_source(env, history):
    env.add_file("/t/dup.torrent", "dup", info_hash=OTHER, trackers=["udp://a:1", "udp://b:2"])
    env.live = [LiveTorrent(id=9, hash=OTHER.upper(), name="dup")]
    workflow = make_workflow(env, history, delete_added=True)

    await workflow.open(LocalPaths(["/t/dup.torrent"]))
    await workflow.submit()

    assert env.add_requests == []
    assert env.merge_requests[0].torrent_id == 9
    assert env.merge_requests[0].trackers == ["udp://a:1", "udp://b:2"]
    assert env.deleted == ["/t/dup.torrent"]
    assert history.entries == []


async def test_merge_does_not_delete_when_not_configured(env):
    env.add_file("/t/dup.torrent", "dup", info_hash=OTHER, trackers=["udp://a:1"])
    env.live = [LiveTorrent(id=9, hash=OTHER)]
    workflow = make_workflow(env)

    await workflow.open(LocalPaths(["/t/dup.torrent"]))
    await workflow.submit()

    assert env.deleted == []


async def test_failed_merge_still_deletes_source(env, caplog):
    env.add_file("/t/dup.torrent", "dup", info_hash=OTHER, trackers=["udp://a:1"])
    env.live = [LiveTorrent(id=9, hash=OTHER)]
    env.merge_error = RuntimeError("boom")
    workflow = make_workflow(env, delete_added=True)

    await workflow.open(LocalPaths(["/t/dup.torrent"]))
    report = await workflow.submit()

    assert not report.merged
    assert env.deleted == ["/t/dup.torrent"]
    assert [(n.title, n.message) for n in env.notifications] == [("Error updating trackers", "boom")]
    # Unnamed live torrent falls back to the file's name
    assert "Failed to update trackers of dup: boom" in caplog.text


async def test_batch_never_matches_existing(env, manifest):
    env.add_file("/t/a.torrent", "a", info_hash=OTHER, manifest=manifest)
    env.add_file("/t/b.torrent", "b", info_hash="f" * 40, manifest=manifest)
    env.live = [LiveTorrent(id=1, hash=OTHER)]

    workflow = make_workflow(env)
    await workflow.open(LocalPaths(["/t/a.torrent", "/t/b.torrent"]))

    assert workflow.existing is None
    assert workflow.selection is None

    await workflow.submit()

    assert env.merge_requests == []
    assert len(env.add_requests) == 2
    assert all(r.unwanted is None for r in env.add_requests)


async def test_single_torrent_carries_file_selection(env, manifest):
    env.add_file("/t/show.torrent", "Show", info_hash=OTHER, manifest=manifest)
    workflow = make_workflow(env)

    await workflow.open(LocalPaths(["/t/show.torrent"]))
    assert workflow.selection is not None

    workflow.selection.set_subtree_wanted(workflow.selection.find("Show/Extras"), False)
    workflow.selection.select(["*.nfo"], wanted=False)
    await workflow.submit()

    request = env.add_requests[0]
    assert request.unwanted == [2, 3]
    assert request.metainfo == "b64:Show"
    assert request.url is None
    assert request.origin_path == "/t/show.torrent"


async def test_batch_dispatches_every_unit_and_tolerates_failures(env, tmp_path):
    paths = [f"/t/{i}.torrent" for i in range(3)]
    for i, path in enumerate(paths):
        env.add_file(path, f"t{i}")
    env.add_errors[paths[1]] = RuntimeError("disk full")
    env.duplicates.add(paths[2])
    env.add_delays = {paths[0]: 0.03, paths[1]: 0.01}

    class CheckingHistory:
        recorded: list[tuple[str, int]] = []

        def record(self, path):
            self.recorded.append((path, env.settled_adds))

    history = CheckingHistory()
    workflow = make_workflow(env, history, delete_added=True, options=AddOptions(download_dir="/dl"))

    await workflow.open(LocalPaths(paths))
    report = await workflow.submit()

    assert len(env.add_requests) == 3
    assert workflow.state == WorkflowState.DONE
    # Recorded once, after all three settled
    assert history.recorded == [("/dl", 3)]

    assert [u.name for u in report.units] == ["t0", "t1", "t2"]
    assert [u.success for u in report.units] == [True, False, True]
    assert [u.name for u in report.failed] == ["t1"]

    titles = sorted(n.title for n in env.notifications)
    assert titles == ["Error adding torrent", "Torrent added", "Torrent already exists"]
    # Only successfully submitted files are removed
    assert sorted(env.deleted) == [paths[0], paths[2]]


async def test_results_are_reported_as_they_settle(env):
    paths = ["/t/slow.torrent", "/t/fast.torrent"]
    for path in paths:
        env.add_file(path, path)
    env.add_delays = {paths[0]: 0.05}

    workflow = make_workflow(env)
    await workflow.open(LocalPaths(paths))
    await workflow.submit()

    assert [n.message for n in env.notifications] == [f"name:{paths[1]}", f"name:{paths[0]}"]


async def test_request_options(env):
    env.add_file("/t/a.torrent", "a")
    workflow = make_workflow(env, options=AddOptions(
        download_dir="/media",
        labels=["tv", "hd", "tv", ""],
        start=False,
        priority=Priority.HIGH,
    ))

    await workflow.open(LocalPaths(["/t/a.torrent"]))
    await workflow.submit()

    request = env.add_requests[0]
    assert request.labels == ["tv", "hd"]
    assert request.paused is True
    assert request.priority == Priority.HIGH
    assert request.unwanted is None  # no manifest


# =============================================================================
# Prompt and blobs
# =============================================================================


async def test_prompt_with_no_selection_cancels(env):
    env.prompt_result = None
    workflow = make_workflow(env)

    assert await workflow.open(Unspecified()) == WorkflowState.CANCELLED
    assert env.prompt_calls == [(["torrent"], True)]
    assert env.notifications == []


async def test_prompt_single_path(env):
    env.add_file("/t/a.torrent", "a")
    env.prompt_result = "/t/a.torrent"
    workflow = make_workflow(env)

    assert await workflow.open(Unspecified()) == WorkflowState.READY
    assert [d.name for d in workflow.descriptors] == ["a"]


async def test_prompt_multiple_paths(env):
    env.add_file("/t/a.torrent", "a")
    env.add_file("/t/b.torrent", "b")
    env.prompt_result = ["/t/a.torrent", "/t/b.torrent"]
    workflow = make_workflow(env)

    await workflow.open(Unspecified())
    assert workflow.display_names(limit=1) == ["a", "... and 1 more"]


async def test_prompt_failure_fails_workflow(env):
    env.prompt_error = RuntimeError("no display")
    workflow = make_workflow(env)

    assert await workflow.open(Unspecified()) == WorkflowState.FAILED
    assert [(n.kind, n.message) for n in env.notifications] == [(NotificationKind.ERROR, "no display")]


async def test_blobs_are_added_by_metadata(env):
    workflow = make_workflow(env)
    blobs = [TorrentBlob(name="one.torrent", data=b"1"), TorrentBlob(name="two.torrent", data=b"2")]

    await workflow.open(Blobs(blobs))

    assert [(d.name, d.metadata, d.info_hash) for d in workflow.descriptors] == [
        ("one.torrent", "b64:1", ""),
        ("two.torrent", "b64:2", ""),
    ]
    await workflow.submit()
    assert [r.metainfo for r in env.add_requests] == ["b64:1", "b64:2"]
    assert all(r.origin_path == "" for r in env.add_requests)


async def test_failed_blob_is_dropped(env):
    env.read_errors["bad.torrent"] = ValueError("unreadable")
    workflow = make_workflow(env)

    await workflow.open(Blobs([TorrentBlob("bad.torrent", b""), TorrentBlob("ok.torrent", b"x")]))

    assert [d.name for d in workflow.descriptors] == ["ok.torrent"]
    assert len(env.errors()) == 1


# =============================================================================
# Lifecycle
# =============================================================================


async def test_close_discards_in_flight_reads(env):
    env.add_file("/t/a.torrent", "a")
    env.read_errors["/t/b.torrent"] = OSError("late failure")
    env.read_delays = {"/t/a.torrent": 0.02, "/t/b.torrent": 0.02}
    workflow = make_workflow(env)

    task = asyncio.create_task(workflow.open(LocalPaths(["/t/a.torrent", "/t/b.torrent"])))
    await asyncio.sleep(0)
    workflow.close()
    state = await task

    assert state == WorkflowState.CANCELLED
    assert workflow.descriptors == []
    assert env.notifications == []


async def test_close_when_ready(env):
    workflow = make_workflow(env)
    await workflow.open(MagnetOrUrl(MAGNET))
    workflow.close()

    assert workflow.state == WorkflowState.CANCELLED
    assert workflow.descriptors == []
    assert not workflow.can_submit


async def test_open_twice_is_an_error(env):
    workflow = make_workflow(env)
    await workflow.open(MagnetOrUrl(MAGNET))
    with pytest.raises(RuntimeError):
        await workflow.open(MagnetOrUrl(MAGNET))


async def test_submit_twice_is_an_error(env):
    workflow = make_workflow(env)
    await workflow.open(MagnetOrUrl(MAGNET))
    await workflow.submit()
    with pytest.raises(RuntimeError):
        await workflow.submit()
    assert len(env.add_requests) == 1


def test_limit_names():
    assert limit_names(["a", "b", "c"], 5) == ["a", "b", "c"]
    assert limit_names(["a", "b", "c"], 2) == ["a", "b", "... and 1 more"]
