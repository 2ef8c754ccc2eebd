"""Tests for lambda_lens.probe — SAM CLI detection and version validation."""

import asyncio

import pytest

from lambda_lens.contracts import SemVer, ValidationOutcome
from lambda_lens.errors import LensError
from lambda_lens.probe import (
    DetectionCache,
    ToolProbe,
    classify_version,
    parse_version,
    standard_locations,
)
from tests.conftest import SKIP_ON_WINDOWS, FakeRunner, fail, make_settings, ok


LOW = SemVer(major=1, minor=0, patch=0)
HIGH = SemVer(major=2, minor=0, patch=0)


def _probe(fake_sam, respond, delay=0.0, notifier=None):
    runner = FakeRunner(respond, delay=delay)
    probe = ToolProbe(
        make_settings(SAM_CLI_LOCATION=fake_sam), runner=runner, notifier=notifier,
    )
    return probe, runner


def _version(text):
    return lambda argv: ok(stdout=text)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestClassifyVersion:
    @pytest.mark.parametrize("raw,expected", [
        ("1.0.0", ValidationOutcome.VALID),
        ("1.97.0", ValidationOutcome.VALID),
        ("1.999.999", ValidationOutcome.VALID),
        ("0.99.0", ValidationOutcome.TOO_OLD),
        ("2.0.0", ValidationOutcome.TOO_NEW),
        ("3.1.4", ValidationOutcome.TOO_NEW),
    ])
    def test_range_is_half_open(self, raw, expected):
        assert classify_version(SemVer.parse(raw), LOW, HIGH) is expected

    def test_none_is_not_parseable(self):
        assert classify_version(None, LOW, HIGH) is ValidationOutcome.VERSION_NOT_PARSEABLE


class TestParseVersion:
    def test_sam_banner(self):
        assert str(parse_version("SAM CLI, version 1.97.0\n")) == "1.97.0"

    def test_empty(self):
        assert parse_version("") is None

    def test_unparseable(self):
        assert parse_version("SAM CLI, version dev") is None


class TestStandardLocations:
    def test_windows(self):
        assert all(p.endswith("sam.cmd") for p in standard_locations("win32"))

    def test_posix(self):
        locations = standard_locations("linux")
        assert "/usr/local/bin/sam" in locations
        assert all(not p.startswith("~") for p in locations)


# ---------------------------------------------------------------------------
# Detection outcomes
# ---------------------------------------------------------------------------

@SKIP_ON_WINDOWS
class TestDetect:
    @pytest.mark.asyncio
    async def test_not_found(self, no_sam_on_host):
        runner = FakeRunner(_version("SAM CLI, version 1.97.0"))
        probe = ToolProbe(make_settings(), runner=runner)
        result = await probe.detect()
        assert result.found is False
        assert result.validation_outcome is ValidationOutcome.NOT_FOUND
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_configured_path_not_executable(self, no_sam_on_host, tmp_path):
        plain = tmp_path / "sam"
        plain.write_text("", encoding="utf-8")
        probe = ToolProbe(
            make_settings(SAM_CLI_LOCATION=str(plain)),
            runner=FakeRunner(_version("1.97.0")),
        )
        assert (await probe.detect()).validation_outcome is ValidationOutcome.NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("banner,expected", [
        ("SAM CLI, version 1.97.0", ValidationOutcome.VALID),
        ("SAM CLI, version 0.53.0", ValidationOutcome.TOO_OLD),
        ("SAM CLI, version 2.0.0", ValidationOutcome.TOO_NEW),
        ("SAM CLI, version dev", ValidationOutcome.VERSION_NOT_PARSEABLE),
    ])
    async def test_classification(self, fake_sam, banner, expected):
        probe, runner = _probe(fake_sam, _version(banner))
        result = await probe.detect()
        assert result.found is True
        assert result.path == fake_sam
        assert result.raw_version == banner
        assert result.validation_outcome is expected
        assert runner.calls == [[fake_sam, "--version"]]

    @pytest.mark.asyncio
    async def test_version_on_stderr(self, fake_sam):
        probe, _ = _probe(fake_sam, lambda argv: ok(stderr="SAM CLI, version 1.50.0"))
        result = await probe.detect()
        assert str(result.version) == "1.50.0"
        assert result.validation_outcome is ValidationOutcome.VALID

    @pytest.mark.asyncio
    async def test_hung_binary_is_not_found(self, fake_sam):
        probe, _ = _probe(fake_sam, lambda argv: fail(killed=True))
        result = await probe.detect()
        assert result.found is False
        assert result.path == fake_sam
        assert result.validation_outcome is ValidationOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_runner_error_is_not_found(self, fake_sam):
        async def _boom(argv, **kwargs):
            raise LensError("Error: Command is empty")

        probe = ToolProbe(make_settings(SAM_CLI_LOCATION=fake_sam), runner=_boom)
        result = await probe.detect()
        assert result.validation_outcome is ValidationOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_detect_timeout_passed_to_runner(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("1.97.0"))
        await probe.detect()
        assert runner.kwargs[0]["timeout_s"] == probe.settings.DETECT_TIMEOUT_S


# ---------------------------------------------------------------------------
# Cache and single-flight
# ---------------------------------------------------------------------------

@SKIP_ON_WINDOWS
class TestDetectionCaching:
    @pytest.mark.asyncio
    async def test_non_forced_uses_cache(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("1.97.0"))
        first = await probe.detect()
        second = await probe.detect()
        assert first == second
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_forced_refresh_runs_again(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("1.97.0"))
        await probe.detect()
        await probe.detect(force_refresh=True)
        assert len(runner.calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("1.97.0"))
        await probe.detect()
        probe.cache.invalidate()
        assert probe.cache.get() is None
        await probe.detect()
        assert len(runner.calls) == 2

    @pytest.mark.asyncio
    async def test_concurrent_forced_detects_share_one_subprocess(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("SAM CLI, version 1.97.0"), delay=0.05)
        a, b = await asyncio.gather(
            probe.detect(force_refresh=True), probe.detect(force_refresh=True),
        )
        assert a == b
        assert len(runner.calls) == 1
        assert probe.cache.get() == a

    @pytest.mark.asyncio
    async def test_sequential_forced_detects_do_not_share(self, fake_sam):
        probe, runner = _probe(fake_sam, _version("1.97.0"), delay=0.01)
        await probe.detect(force_refresh=True)
        await probe.detect(force_refresh=True)
        assert len(runner.calls) == 2


class TestDetectionCache:
    def test_set_get_invalidate(self):
        from lambda_lens.contracts import ToolDetectionResult

        cache = DetectionCache()
        assert cache.get() is None
        result = ToolDetectionResult.not_found()
        cache.set(result)
        assert cache.get() is result
        cache.invalidate()
        assert cache.get() is None


# ---------------------------------------------------------------------------
# validate_and_notify
# ---------------------------------------------------------------------------

@SKIP_ON_WINDOWS
class TestValidateAndNotify:
    @pytest.mark.asyncio
    async def test_valid_does_not_notify(self, fake_sam):
        seen = []
        probe, _ = _probe(
            fake_sam, _version("1.97.0"), notifier=lambda o, m: seen.append((o, m)),
        )
        assert await probe.validate_and_notify() is ValidationOutcome.VALID
        assert seen == []

    @pytest.mark.asyncio
    async def test_too_old_notifies(self, fake_sam):
        seen = []
        probe, _ = _probe(
            fake_sam, _version("SAM CLI, version 0.9.0"),
            notifier=lambda o, m: seen.append((o, m)),
        )
        assert await probe.validate_and_notify() is ValidationOutcome.TOO_OLD
        assert len(seen) == 1
        assert seen[0][0] is ValidationOutcome.TOO_OLD
        assert "too old" in seen[0][1]

    @pytest.mark.asyncio
    async def test_not_found_notifies(self, no_sam_on_host):
        seen = []
        probe = ToolProbe(
            make_settings(), runner=FakeRunner(_version("1.0.0")),
            notifier=lambda o, m: seen.append(o),
        )
        assert await probe.validate_and_notify() is ValidationOutcome.NOT_FOUND
        assert seen == [ValidationOutcome.NOT_FOUND]

    @pytest.mark.asyncio
    async def test_failing_notifier_is_swallowed(self, fake_sam):
        def _broken(outcome, message):
            raise RuntimeError("ui gone")

        probe, _ = _probe(fake_sam, _version("2.5.0"), notifier=_broken)
        assert await probe.validate_and_notify() is ValidationOutcome.TOO_NEW

    def test_describe_messages(self, fake_sam):
        from lambda_lens.contracts import ToolDetectionResult

        probe, _ = _probe(fake_sam, _version("1.0.0"))
        unparseable = ToolDetectionResult(
            found=True, path=fake_sam, raw_version="dev",
            validation_outcome=ValidationOutcome.VERSION_NOT_PARSEABLE,
        )
        assert "'dev'" in probe.describe(unparseable)
        assert "LAMBDA_LENS_SAM_CLI_LOCATION" in probe.describe(ToolDetectionResult.not_found())
