import logging
from pathlib import Path

import pytest

from src.media_core import errors
from src.media_core.ffmpeg import AudioProbe, ToolOutput
from src.media_core.orchestrator import NO_RMS_NOTE, AnalysisOrchestrator
from src.media_core.types import AnalysisConfig, AnalysisMethod, Interval

MEDIA = Path("/tmp/clipsense-test/input.mp4")

SCENARIO_SAMPLES = [(0, -40), (1, -10), (2, -9), (3, -41), (4, -8)]


@pytest.mark.asyncio
async def test_primary_measurement_end_to_end(fake_tool, loudness_log):
    tool = fake_tool(loudness=ToolOutput(0, loudness_log(SCENARIO_SAMPLES)))
    config = AnalysisConfig(percentile=0.6, floor_level=-35, pad=1, merge_gap=1)

    result = await AnalysisOrchestrator(tool).analyze(MEDIA, config)

    assert result.method is AnalysisMethod.PRIMARY_MEASUREMENT
    assert result.threshold_used == -9.0
    assert result.sample_count == 5
    assert result.raw_ranges_count == 2
    assert result.ranges == [Interval(1, 5)]
    assert result.note is None
    assert [call[0] for call in tool.calls] == ["probe", "loudness"]


@pytest.mark.asyncio
async def test_no_audio_short_circuits(fake_tool):
    tool = fake_tool(probe=AudioProbe(has_audio=False))
    result = await AnalysisOrchestrator(tool).analyze(MEDIA, AnalysisConfig(floor_level=-30))

    assert result.method is AnalysisMethod.NO_AUDIO
    assert result.ranges == []
    assert result.sample_count == 0
    assert result.threshold_used == -30
    assert result.note == "no audio stream"
    assert [call[0] for call in tool.calls] == ["probe"]


@pytest.mark.asyncio
async def test_primary_failure_uses_silence_fallback_only(fake_tool, silence_log):
    tool = fake_tool(
        probe=AudioProbe(has_audio=True, duration=10.0),
        loudness=errors.ToolError("ffmpeg exploded", output="lavfi.astats.Overall.RMS_level=-3"),
        silence=ToolOutput(0, silence_log([("start", 2), ("end", 5)])),
    )
    config = AnalysisConfig(max_seconds=10, floor_level=-35, pad=0, merge_gap=0)

    result = await AnalysisOrchestrator(tool).analyze(MEDIA, config)

    assert result.method is AnalysisMethod.FALLBACK_SILENCE
    assert result.threshold_used == -35
    assert result.ranges == [Interval(0, 2), Interval(5, 10)]
    assert result.sample_count == 2
    assert "primary measurement failed: ffmpeg exploded" in result.note
    # nothing from the primary output leaks into the fallback excerpt
    assert "RMS_level" not in (result.raw_excerpt or "")


@pytest.mark.asyncio
async def test_unrecognised_primary_output_falls_back(fake_tool, silence_log):
    tool = fake_tool(
        loudness=ToolOutput(0, "Stream #0:1: Audio: aac, 44100 Hz\n"),
        silence=ToolOutput(0, silence_log([])),
    )
    config = AnalysisConfig(max_seconds=30, pad=0, merge_gap=0)

    result = await AnalysisOrchestrator(tool).analyze(MEDIA, config)

    assert result.method is AnalysisMethod.FALLBACK_SILENCE
    assert result.ranges == [Interval(0, 30)]
    assert NO_RMS_NOTE in result.notes
    silence_call = tool.calls[-1]
    assert silence_call == ("silence", MEDIA, 30, -35.0, 0.5)


@pytest.mark.asyncio
async def test_nonzero_primary_exit_falls_back(fake_tool, silence_log):
    tool = fake_tool(
        loudness=ToolOutput(1, "Invalid data found when processing input"),
        silence=ToolOutput(0, silence_log([("start", 1)])),
    )
    result = await AnalysisOrchestrator(tool).analyze(
        MEDIA, AnalysisConfig(max_seconds=8, pad=0, merge_gap=0)
    )
    assert result.method is AnalysisMethod.FALLBACK_SILENCE
    assert result.ranges == [Interval(0, 1)]
    assert result.notes == ["primary measurement failed: exit code 1"]


@pytest.mark.asyncio
async def test_fallback_failure_raises_analysis_error(fake_tool, caplog):
    tool = fake_tool(
        loudness=ToolOutput(1, "primary tail"),
        silence=errors.ToolError("silencedetect crashed", output="fallback tail"),
    )
    with caplog.at_level(logging.ERROR, logger="clipsense.analysis"):
        with pytest.raises(errors.AnalysisError) as info:
            await AnalysisOrchestrator(tool).analyze(MEDIA, AnalysisConfig())

    assert "silence detection failed" in str(info.value)
    assert "primary tail" in info.value.excerpt
    assert "fallback tail" in info.value.excerpt
    assert isinstance(info.value.__cause__, errors.ToolError)
    assert any("astats analysis failed" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_fallback_nonzero_exit_raises(fake_tool):
    tool = fake_tool(loudness=ToolOutput(0, ""), silence=ToolOutput(234, "No such filter"))
    with pytest.raises(errors.AnalysisError, match="exit code 234"):
        await AnalysisOrchestrator(tool).analyze(MEDIA, AnalysisConfig())


@pytest.mark.asyncio
async def test_probe_failure_is_not_fatal(fake_tool, loudness_log):
    tool = fake_tool(
        probe=errors.ToolNotFoundError("ffprobe not found"),
        loudness=ToolOutput(0, loudness_log([(0, -10), (0.5, -10)])),
    )
    result = await AnalysisOrchestrator(tool).analyze(
        MEDIA, AnalysisConfig(pad=0, merge_gap=0)
    )
    assert result.method is AnalysisMethod.PRIMARY_MEASUREMENT
    assert result.ranges == [Interval(0, 0.5)]
    assert result.notes == ["audio probe failed"]


@pytest.mark.asyncio
async def test_fallback_horizon_is_probed_duration(fake_tool, silence_log):
    tool = fake_tool(
        probe=AudioProbe(has_audio=True, duration=6.0),
        loudness=ToolOutput(0, ""),
        silence=ToolOutput(0, silence_log([("end", 1.0)])),
    )
    result = await AnalysisOrchestrator(tool).analyze(
        MEDIA, AnalysisConfig(max_seconds=1200, pad=0, merge_gap=0)
    )
    assert result.ranges == [Interval(1.0, 6.0)]


@pytest.mark.asyncio
async def test_synthetic_timestamps_are_noted(fake_tool):
    text = "RMS level dB: -5\nRMS level dB: -50\nRMS level dB: -4\n"
    tool = fake_tool(loudness=ToolOutput(0, text))
    result = await AnalysisOrchestrator(tool).analyze(
        MEDIA, AnalysisConfig(percentile=0.0, floor_level=-20, pad=0, merge_gap=0)
    )
    assert result.ranges == [Interval(0.0, 0.0), Interval(1.0, 1.0)]
    assert result.notes == ["timestamps synthesized at 0.5s steps"]


@pytest.mark.asyncio
async def test_payload_shape(fake_tool, loudness_log):
    tool = fake_tool(loudness=ToolOutput(0, loudness_log(SCENARIO_SAMPLES)))
    result = await AnalysisOrchestrator(tool, excerpt_chars=40).analyze(MEDIA, AnalysisConfig())

    payload = result.to_payload()
    assert set(payload) == {"threshold", "ranges", "points", "sampleCount", "method", "note"}
    assert payload["method"] == "primary_measurement"
    assert payload["points"] == payload["sampleCount"] == 5

    diagnostics = result.to_payload(include_raw=True)["diagnostics"]
    assert diagnostics["raw_ranges"] == 2
    assert diagnostics["raw_excerpt"].startswith("...")
    assert len(diagnostics["raw_excerpt"]) == 43
