"""
Tests for the hardware capability probe.
"""

import dataclasses
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from matrixprod import capabilities
from matrixprod.capabilities import (
    DEFAULT_THREAD_COUNT,
    THROUGHPUT_ESTIMATES,
    CapabilityRecord,
    HardwareDetector,
    PlatformClass,
    SIMDTier,
    detect,
    format_capabilities,
    probe_capabilities,
)


class TestCapabilityRecord:

    def test_has_eight_fields_in_fixed_order(self, make_capabilities):
        record = make_capabilities()

        names = [f.name for f in dataclasses.fields(record)]

        assert names == [
            'has_vendor_blas', 'has_opencl', 'has_gpu', 'thread_count',
            'simd_tier', 'est_gflops_small', 'est_gflops_medium', 'est_gflops_large',
        ]
        assert len(record.as_tuple()) == 8

    def test_is_immutable(self, make_capabilities):
        record = make_capabilities()

        with pytest.raises(dataclasses.FrozenInstanceError):
            record.thread_count = 2

    @pytest.mark.parametrize("overrides", [
        {'thread_count': 0},
        {'simd_tier': 5},
        {'simd_tier': -1},
        {'est_gflops_large': 0.0},
    ])
    def test_invalid_values_rejected(self, make_capabilities, overrides):
        with pytest.raises(ValueError):
            make_capabilities(**overrides)

    def test_as_dict_is_json_serialisable(self, make_capabilities):
        data = json.loads(json.dumps(make_capabilities().as_dict()))

        assert data['thread_count'] == 8
        assert data['simd_tier'] == 1

    def test_simd_tier_name(self, make_capabilities):
        assert make_capabilities(simd_tier=3).simd_tier_name == 'AVX2'


class TestHardwareDetector:

    @pytest.mark.parametrize("features,tier", [
        ({'avx512f', 'avx2', 'avx', 'sse2'}, SIMDTier.AVX512),
        ({'avx2', 'avx', 'sse2'}, SIMDTier.AVX2),
        ({'avx', 'sse2'}, SIMDTier.AVX),
        ({'sse', 'sse2'}, SIMDTier.SSE2),
        ({'neon'}, SIMDTier.SSE2),
        ({'asimd', 'fp'}, SIMDTier.SSE2),
        (set(), SIMDTier.NONE),
    ])
    def test_simd_tier_mapping(self, features, tier):
        assert HardwareDetector.simd_tier(features) is tier

    def test_thread_count_is_positive(self):
        assert HardwareDetector.detect_thread_count() >= 1

    def test_thread_count_default_when_unknown(self, monkeypatch):
        monkeypatch.setattr(capabilities.psutil, "cpu_count", lambda logical=True: None)
        monkeypatch.setattr(capabilities.os, "cpu_count", lambda: None)

        assert HardwareDetector.detect_thread_count() == DEFAULT_THREAD_COUNT

    def test_platform_class_estimates(self, monkeypatch):
        monkeypatch.setattr(capabilities.platform, "system", lambda: "Darwin")
        monkeypatch.setattr(capabilities.platform, "machine", lambda: "arm64")

        assert HardwareDetector.platform_class() is PlatformClass.APPLE_SILICON
        assert THROUGHPUT_ESTIMATES[PlatformClass.APPLE_SILICON] == (26.0, 143.0, 397.0)

    def test_generic_class_depends_on_vendor_blas(self, monkeypatch):
        monkeypatch.setattr(capabilities.platform, "system", lambda: "Linux")

        assert HardwareDetector.platform_class(has_vendor_blas=True) is PlatformClass.GENERIC
        assert HardwareDetector.platform_class(has_vendor_blas=False) is PlatformClass.GENERIC_NO_BLAS
        with_blas = THROUGHPUT_ESTIMATES[PlatformClass.GENERIC]
        without_blas = THROUGHPUT_ESTIMATES[PlatformClass.GENERIC_NO_BLAS]
        assert all(low < high for low, high in zip(without_blas[1:], with_blas[1:]))

    def test_estimates_follow_detected_blas(self, monkeypatch, no_blas):
        monkeypatch.setattr(capabilities.platform, "system", lambda: "Linux")

        record = detect()

        assert record.has_vendor_blas is False
        assert record.as_tuple()[5:] == THROUGHPUT_ESTIMATES[PlatformClass.GENERIC_NO_BLAS]

    def test_gpu_only_recognised_on_darwin(self, monkeypatch):
        monkeypatch.setattr(capabilities.platform, "system", lambda: "Linux")

        assert HardwareDetector.detect_gpu() is False


class TestDetect:

    def test_record_is_well_formed(self):
        record = detect()

        assert record.thread_count >= 1
        assert 0 <= record.simd_tier <= 4
        assert record.est_gflops_small > 0
        assert record.est_gflops_medium > 0
        assert record.est_gflops_large > 0

    def test_failing_probes_fall_back_to_defaults(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("probe failed")

        monkeypatch.setattr(HardwareDetector, "detect_cpu_features", staticmethod(boom))
        monkeypatch.setattr(HardwareDetector, "detect_thread_count", staticmethod(boom))
        monkeypatch.setattr(HardwareDetector, "detect_opencl", staticmethod(boom))
        monkeypatch.setattr(HardwareDetector, "detect_gpu", staticmethod(boom))
        monkeypatch.setattr(HardwareDetector, "platform_class", staticmethod(boom))
        monkeypatch.setattr(capabilities._blas, "blas_available", boom)

        record = detect()

        assert record == CapabilityRecord(
            has_vendor_blas=False,
            has_opencl=False,
            has_gpu=False,
            thread_count=DEFAULT_THREAD_COUNT,
            simd_tier=0,
            est_gflops_small=10.0,
            est_gflops_medium=20.0,
            est_gflops_large=20.0,
        )


class TestProbeCache:

    def test_returns_same_object(self, fresh_probe):
        assert probe_capabilities() is probe_capabilities()

    def test_force_recomputes(self, fresh_probe, monkeypatch):
        monkeypatch.setattr(capabilities._blas, "_PROVIDER", capabilities._blas._PROVIDER)
        monkeypatch.setattr(capabilities._blas, "_LOADED", capabilities._blas._LOADED)
        first = probe_capabilities()

        second = probe_capabilities(force=True)

        assert second is not first
        assert probe_capabilities() is second

    def test_force_repeats_vendor_blas_search(self, fresh_probe, no_blas, monkeypatch):
        monkeypatch.delenv("MATRIXPROD_NO_BLAS", raising=False)
        assert probe_capabilities().has_vendor_blas is False

        provider = capabilities._blas.BlasProvider("late")
        monkeypatch.setattr(capabilities._blas, "_load_cblas", lambda: provider)

        assert probe_capabilities().has_vendor_blas is False
        forced = probe_capabilities(force=True)

        assert forced.has_vendor_blas is True
        assert capabilities._blas.load_provider() is provider

    def test_concurrent_first_calls_share_one_record(self, fresh_probe, monkeypatch):
        calls = []
        real_detect = capabilities.detect

        def counting_detect(force=False):
            calls.append(1)
            return real_detect(force)

        monkeypatch.setattr(capabilities, "detect", counting_detect)

        with ThreadPoolExecutor(max_workers=8) as pool:
            records = list(pool.map(lambda _: probe_capabilities(), range(32)))

        assert len(calls) == 1
        assert all(r is records[0] for r in records)


class TestFormatting:

    def test_report_lists_every_fact(self, make_capabilities):
        report = format_capabilities(make_capabilities(has_vendor_blas=True, simd_tier=3))

        assert "Vendor BLAS: Yes" in report
        assert "OpenCL: No" in report
        assert "CPU Threads: 8" in report
        assert "SIMD Tier: 3 (AVX2)" in report
        assert "90.0 GFLOPS" in report
