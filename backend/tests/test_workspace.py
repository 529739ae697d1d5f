"""Unit tests for SignalRecord and ConversionWorkspace."""
import numpy as np
import pytest

from ecgconvert.format_tags import FormatTag
from ecgconvert.workspace import ConversionWorkspace, SignalRecord


def make_record(channels=2, samples=4, **overrides):
    data = np.arange(channels * samples).reshape(channels, samples)
    fields = dict(
        data=data,
        sampling_rate=500.0,
        channel_count=channels,
        samples_per_channel=samples,
        adu_gain=200,
        source_format=FormatTag.RDT,
    )
    fields.update(overrides)
    return SignalRecord(**fields)


class TestSignalRecord:
    """Test SignalRecord construction and invariants."""

    def test_shape_matches_counts(self):
        record = make_record(3, 10)
        assert record.data.shape == (3, 10)
        assert record.data.dtype == np.int64

    def test_data_is_read_only(self):
        record = make_record()
        with pytest.raises(ValueError):
            record.data[0, 0] = 99

    def test_data_is_copied(self):
        source = np.zeros((2, 3), dtype=np.int64)
        record = SignalRecord(source, 250.0, 2, 3, 100, FormatTag.GEMUSE)
        source[0, 0] = 7
        assert record.data[0, 0] == 0

    def test_channel_count_mismatch(self):
        with pytest.raises(ValueError, match="Channel count"):
            make_record(2, 4, channel_count=3)

    def test_sample_count_mismatch(self):
        with pytest.raises(ValueError, match="Samples per channel"):
            make_record(2, 4, samples_per_channel=5)

    def test_gain_must_be_positive(self):
        with pytest.raises(ValueError, match="gain"):
            make_record(adu_gain=0)

    def test_rate_must_be_positive(self):
        with pytest.raises(ValueError, match="Sampling rate"):
            make_record(sampling_rate=0.0)

    def test_lead_names_must_cover_channels(self):
        with pytest.raises(ValueError, match="lead names"):
            make_record(2, 4, lead_names="I,II,III")

    def test_empty_matrix(self):
        record = SignalRecord(np.array([]), 500.0, 0, 0, 200, FormatTag.RDT)
        assert record.data.shape == (0, 0)

    def test_channel_labels(self):
        assert make_record(2, 4, lead_names="I,II").channel_labels() == ["I", "II"]
        assert make_record(2, 4).channel_labels() == ["ch1", "ch2"]

    def test_immutable(self):
        record = make_record()
        with pytest.raises(AttributeError):
            record.adu_gain = 100


class TestConversionWorkspace:
    """Test workspace generations."""

    def test_empty_workspace(self):
        ws = ConversionWorkspace()
        assert not ws.is_loaded
        assert ws.record is None
        assert ws.data.shape == (0, 0)
        assert ws.channel_count == 0
        assert ws.samples_per_channel == 0
        assert ws.lead_names is None
        assert ws.payload is None
        assert ws.adu_gain > 0

    def test_install_exposes_record(self):
        ws = ConversionWorkspace()
        record = make_record(3, 5, lead_names="I,II,III", payload="<xml/>")
        ws.install(record)

        assert ws.is_loaded
        assert ws.data.shape == (ws.channel_count, ws.samples_per_channel)
        assert ws.channel_count == 3
        assert ws.samples_per_channel == 5
        assert ws.sampling_rate == 500.0
        assert ws.adu_gain == 200
        assert ws.lead_names == "I,II,III"
        assert ws.payload == "<xml/>"
        assert ws.source_format == FormatTag.RDT

    def test_install_replaces_whole_generation(self):
        ws = ConversionWorkspace()
        ws.install(make_record(2, 4, lead_names="I,II", payload="first"))
        ws.install(make_record(1, 8, source_format=FormatTag.GEMUSE))

        assert ws.channel_count == 1
        assert ws.samples_per_channel == 8
        assert ws.lead_names is None
        assert ws.payload is None
        assert ws.source_format == FormatTag.GEMUSE
