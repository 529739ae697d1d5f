"""
Tests for the format dispatcher.

Readers and writers are replaced by small doubles so the tests cover the
dispatch rules, signal count discovery and workspace atomicity only.
"""
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from ecgconvert.dispatcher import FormatDispatcher
from ecgconvert.exceptions import (
    ErrorKind,
    SourceParseError,
    UnsupportedFormatError,
    WriteError,
)
from ecgconvert.format_tags import FormatTag
from ecgconvert.formats.base import SignalReader
from ecgconvert.formats.registry import FormatHandler, FormatRegistry, build_default_registry
from ecgconvert.workspace import ConversionWorkspace, SignalRecord


class FakeReader(SignalReader):
    """Reader returning a fixed 2 x 5 signal."""

    def parse(self) -> bool:
        self._set_matrix(np.arange(10).reshape(2, 5))
        self.sampling_rate = 250.0
        self.adu_gain = 100
        self.lead_names = ["I", "II"]
        self.payload = "payload"
        return True


class FailingReader(SignalReader):
    def parse(self) -> bool:
        return False


class RaisingReader(SignalReader):
    def parse(self) -> bool:
        raise RuntimeError("corrupt source")


class ZeroGainReader(FakeReader):
    def parse(self) -> bool:
        super().parse()
        self.adu_gain = 0
        return True


class CountingReader(SignalReader):
    """Record-style reader that reports how many signals the record holds."""

    available = 3
    requested = []

    def signal_count(self, record_name: str) -> int:
        return self.available

    def parse(self) -> bool:
        CountingReader.requested.append(self.signals_requested)
        self._set_matrix(np.ones((self.signals_requested, 4)))
        self.sampling_rate = 360.0
        return True


def seeded_workspace() -> ConversionWorkspace:
    ws = ConversionWorkspace()
    ws.install(SignalRecord(
        data=np.full((1, 3), 7),
        sampling_rate=100.0,
        channel_count=1,
        samples_per_channel=3,
        adu_gain=50,
        source_format=FormatTag.GEMUSE,
        lead_names="I",
    ))
    return ws


def registry_with(*handlers) -> FormatRegistry:
    registry = FormatRegistry()
    for handler in handlers:
        registry.register(handler)
    return registry


class TestRead:
    """Test loading through the dispatcher."""

    def test_read_installs_record(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.RDT, FakeReader)))

        record = dispatcher.read(FormatTag.RDT, "a.rdt", 0, tmp_path, "a")

        ws = dispatcher.workspace
        assert ws.record is record
        assert ws.data.shape == (ws.channel_count, ws.samples_per_channel) == (2, 5)
        assert ws.sampling_rate == 250.0
        assert ws.adu_gain == 100
        assert ws.lead_names == "I,II"
        assert ws.number_of_points == 10
        assert ws.allocated_channels == 2

    def test_payload_only_kept_for_payload_formats(self, tmp_path):
        registry = registry_with(
            FormatHandler(FormatTag.RDT, FakeReader),
            FormatHandler(FormatTag.SCHILLER, FakeReader),
        )
        dispatcher = FormatDispatcher(registry=registry)

        dispatcher.read(FormatTag.RDT, "a.rdt", 0, tmp_path, "a")
        assert dispatcher.workspace.payload is None

        dispatcher.read(FormatTag.SCHILLER, "a.xml", 0, tmp_path, "a")
        assert dispatcher.workspace.payload == "payload"

    def test_zero_gain_replaced_by_default(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.RDT, ZeroGainReader)))
        record = dispatcher.read(FormatTag.RDT, "a.rdt", 0, tmp_path, "a")
        assert record.adu_gain > 0

    def test_accepts_string_tag(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.RDT, FakeReader)))
        dispatcher.read("RDT", "a.rdt", 0, tmp_path, "a")
        assert dispatcher.workspace.is_loaded

    def test_unknown_tag(self, tmp_path):
        dispatcher = FormatDispatcher(workspace=seeded_workspace())
        with pytest.raises(UnsupportedFormatError) as exc_info:
            dispatcher.read("NOT_A_FORMAT", "a.x", 0, tmp_path, "a")
        assert exc_info.value.kind == ErrorKind.UNSUPPORTED_FORMAT

    def test_unregistered_tag(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.RDT, FakeReader)))
        with pytest.raises(UnsupportedFormatError):
            dispatcher.read(FormatTag.HL7, "a.xml", 0, tmp_path, "a")


class TestReadAtomicity:
    """A failing load must leave the previous generation intact."""

    @pytest.mark.parametrize("reader", [FailingReader, RaisingReader])
    def test_failed_load_keeps_previous_generation(self, tmp_path, reader):
        ws = seeded_workspace()
        before = ws.record
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.RDT, reader)))

        with pytest.raises(SourceParseError) as exc_info:
            dispatcher.read(FormatTag.RDT, "bad.rdt", 0, tmp_path, "bad")

        assert ws.record is before
        assert ws.channel_count == 1
        assert ws.lead_names == "I"
        assert exc_info.value.context["file_name"] == "bad.rdt"
        assert exc_info.value.context["record_name"] == "bad"

    def test_inconsistent_reader_output_rejected(self, tmp_path):
        class InconsistentReader(FakeReader):
            def parse(self):
                super().parse()
                self.channels = 3
                return True

        ws = seeded_workspace()
        before = ws.record
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.RDT, InconsistentReader)))

        with pytest.raises(SourceParseError):
            dispatcher.read(FormatTag.RDT, "a.rdt", 0, tmp_path, "a")
        assert ws.record is before


class TestSignalCountDiscovery:
    """Test signals_requested == 0 for record formats."""

    def setup_method(self):
        CountingReader.requested = []
        CountingReader.available = 3

    def test_zero_requests_every_signal(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.WFDB, CountingReader)))

        record = dispatcher.read(FormatTag.WFDB, "100.hea", 0, tmp_path, "100")

        assert CountingReader.requested == [3]
        assert record.channel_count == 3

    def test_explicit_count_used_as_is(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.WFDB_212, CountingReader)))

        record = dispatcher.read(FormatTag.WFDB_212, "100.hea", 2, tmp_path, "100")

        assert CountingReader.requested == [2]
        assert record.channel_count == 2

    @pytest.mark.parametrize("available", [0, -1])
    def test_unreadable_count_fails(self, tmp_path, available):
        CountingReader.available = available
        ws = seeded_workspace()
        before = ws.record
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.WFDB, CountingReader)))

        with pytest.raises(SourceParseError):
            dispatcher.read(FormatTag.WFDB, "100.hea", 0, tmp_path, "100")
        assert CountingReader.requested == []
        assert ws.record is before

    def test_count_ignored_for_other_formats(self, tmp_path):
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.GEMUSE, CountingReader)))

        record = dispatcher.read(FormatTag.GEMUSE, "a.txt", 0, tmp_path, "a")

        assert CountingReader.requested == [0]
        assert record.channel_count == 0


class TestWrite:
    """Test writing through the dispatcher."""

    def test_write_calls_writer_with_output_file(self, tmp_path):
        writer = MagicMock(return_value=3)
        ws = seeded_workspace()
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.RDT, FakeReader, writer)))

        rows = dispatcher.write(FormatTag.RDT, tmp_path, "out")

        assert rows == 3
        writer.assert_called_once_with(ws.record, Path(tmp_path) / "out.rdt", "out")

    def test_write_unknown_tag(self, tmp_path):
        dispatcher = FormatDispatcher(workspace=seeded_workspace())
        with pytest.raises(UnsupportedFormatError):
            dispatcher.write("NOT_A_FORMAT", tmp_path, "out")

    def test_write_load_only_format(self, tmp_path):
        dispatcher = FormatDispatcher(workspace=seeded_workspace())
        with pytest.raises(UnsupportedFormatError):
            dispatcher.write(FormatTag.MUSEXML, tmp_path, "out")

    def test_write_without_loaded_signal(self, tmp_path):
        writer = MagicMock(return_value=3)
        dispatcher = FormatDispatcher(registry=registry_with(FormatHandler(FormatTag.RDT, FakeReader, writer)))

        with pytest.raises(WriteError) as exc_info:
            dispatcher.write(FormatTag.RDT, tmp_path, "out")
        assert exc_info.value.kind == ErrorKind.WRITE_FAILURE
        writer.assert_not_called()

    def test_writer_negative_result(self, tmp_path):
        writer = MagicMock(return_value=-1)
        ws = seeded_workspace()
        before = ws.record
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.RDT, FakeReader, writer)))

        with pytest.raises(WriteError):
            dispatcher.write(FormatTag.RDT, tmp_path, "out")
        assert ws.record is before

    def test_writer_raises(self, tmp_path):
        writer = MagicMock(side_effect=OSError("disk full"))
        ws = seeded_workspace()
        before = ws.record
        dispatcher = FormatDispatcher(ws, registry_with(FormatHandler(FormatTag.RDT, FakeReader, writer)))

        with pytest.raises(WriteError, match="disk full"):
            dispatcher.write(FormatTag.RDT, tmp_path, "out")
        assert ws.record is before


class TestDefaultRegistry:
    """Test the built-in dispatch table."""

    def test_every_tag_registered(self):
        registry = build_default_registry()
        for tag in FormatTag:
            assert tag in registry

    def test_directions_follow_capabilities(self):
        registry = build_default_registry()
        for tag in (FormatTag.RDT, FormatTag.HL7, FormatTag.GEMUSE, FormatTag.WFDB, FormatTag.WFDB_61):
            assert registry.get(tag).can_write
        for tag in (FormatTag.PHILIPS103, FormatTag.SCHILLER, FormatTag.MUSEXML, FormatTag.RAW_XY_VAR_SAMPLE):
            assert registry.get(tag).can_load
            assert not registry.get(tag).can_write

    def test_wfdb_writers_use_sub_format(self):
        registry = build_default_registry()
        assert registry.get(FormatTag.WFDB).writer.keywords == {"fmt": 16}
        assert registry.get(FormatTag.WFDB_212).writer.keywords == {"fmt": 212}

    def test_unknown_lookup(self):
        assert build_default_registry().get("XYZ") is None
