"""
Tests for the vendor BLAS delegate and BLAS discovery.
"""

import logging

import numpy as np
import pytest

from matrixprod import _blas
from matrixprod.buffer import Layout, MatrixBuffer, from_array
from matrixprod.config import ENV_NO_BLAS
from matrixprod.errors import UnsupportedVariantError
from matrixprod.kernels import multiply_naive, multiply_vendor
from matrixprod.kernels.vendor import resolve_provider
from matrixprod.variants import VariantKind


class RecordingProvider(_blas.BlasProvider):
    """Column-major dgemm computed with numpy, recording what it was given."""

    def __init__(self):
        super().__init__("recording")
        self.calls = []

    def dgemm(self, m, n, k, a, b, c):
        assert a.flags['F_CONTIGUOUS'] and b.flags['F_CONTIGUOUS'] and c.flags['F_CONTIGUOUS']
        assert a.shape == (m, k) and b.shape == (k, n) and c.shape == (m, n)
        self.calls.append((m, n, k))
        c[...] = a @ b


class TestLayoutTranslation:
    """The delegate always hands column-major data to BLAS."""

    def _operands(self, layout_a, layout_b):
        rng = np.random.default_rng(3)
        A = rng.uniform(-1, 1, (7, 4))
        B = rng.uniform(-1, 1, (4, 5))
        return A, B, from_array(A, layout_a), from_array(B, layout_b)

    @pytest.mark.parametrize("layout_a", list(Layout))
    @pytest.mark.parametrize("layout_b", list(Layout))
    def test_any_layout_reaches_blas_column_major(self, layout_a, layout_b):
        provider = RecordingProvider()
        A, B, a, b = self._operands(layout_a, layout_b)

        result = multiply_vendor(a, b, provider=provider)

        assert provider.calls == [(7, 5, 4)]
        assert result.layout is layout_a
        np.testing.assert_allclose(result.as_2d(), A @ B, rtol=1e-12)

    def test_operands_are_not_modified(self):
        provider = RecordingProvider()
        _, _, a, b = self._operands(Layout.ROW_MAJOR, Layout.ROW_MAJOR)
        a_before, b_before = a.data.copy(), b.data.copy()

        multiply_vendor(a, b, provider=provider)

        assert np.array_equal(a.data, a_before)
        assert np.array_equal(b.data, b_before)

    def test_column_major_output_is_written_in_place(self):
        provider = RecordingProvider()
        A, B, a, b = self._operands(Layout.COLUMN_MAJOR, Layout.COLUMN_MAJOR)
        storage = np.zeros(35)
        out = MatrixBuffer(storage, 7, 5, Layout.COLUMN_MAJOR)

        multiply_vendor(a, b, out=out, provider=provider)

        np.testing.assert_allclose(storage, (A @ B).ravel(order='F'), rtol=1e-12)

    def test_row_major_output_is_copied_back(self):
        provider = RecordingProvider()
        A, B, a, b = self._operands(Layout.ROW_MAJOR, Layout.COLUMN_MAJOR)
        storage = np.zeros(35)
        out = MatrixBuffer(storage, 7, 5, Layout.ROW_MAJOR)

        multiply_vendor(a, b, out=out, provider=provider)

        np.testing.assert_allclose(storage, (A @ B).ravel(order='C'), rtol=1e-12)

    def test_empty_dimensions_skip_blas(self):
        provider = RecordingProvider()
        out = MatrixBuffer(np.full(6, 3.0), 2, 3)

        multiply_vendor(MatrixBuffer.zeros(2, 0), MatrixBuffer.zeros(0, 3), out=out, provider=provider)

        assert provider.calls == []
        assert not out.data.any()


class TestUnavailableBlas:
    """Policy when VendorBlas is requested on a host without BLAS."""

    def test_degrades_to_blocked(self, no_blas, caplog):
        a = MatrixBuffer.from_rows([[1, 2], [3, 4]])
        b = MatrixBuffer.from_rows([[5, 6], [7, 8]])

        with caplog.at_level(logging.WARNING, logger="matrixprod"):
            c = multiply_vendor(a, b)

        assert c.to_rows() == [[19.0, 22.0], [43.0, 50.0]]
        assert "unavailable" in caplog.text

    def test_strict_mode_raises(self, no_blas):
        a = MatrixBuffer.from_rows([[1, 2], [3, 4]])

        with pytest.raises(UnsupportedVariantError) as excinfo:
            multiply_vendor(a, MatrixBuffer.identity(2), strict=True)

        assert excinfo.value.variant.kind is VariantKind.VENDOR_BLAS

    def test_resolve_provider_returns_none(self, no_blas):
        assert resolve_provider() is None
        assert not _blas.blas_available()
        assert _blas.blas_vendor() is None

    def test_fallback_uses_configured_block_size(self, no_blas, monkeypatch):
        from matrixprod.kernels import vendor

        seen = []
        original = vendor.multiply_blocked

        def spy(a, b, block_size, out=None):
            seen.append(block_size)
            return original(a, b, block_size, out=out)

        monkeypatch.setattr(vendor, "multiply_blocked", spy)
        a = MatrixBuffer.identity(3)

        multiply_vendor(a, MatrixBuffer.identity(3), fallback_block_size=2)

        assert seen == [2]


class TestDiscovery:
    """Provider discovery and its process-wide cache."""

    def test_disabled_by_environment(self, monkeypatch):
        monkeypatch.setattr(_blas, "_PROVIDER", None)
        monkeypatch.setattr(_blas, "_LOADED", False)
        monkeypatch.setenv(ENV_NO_BLAS, "1")

        assert _blas.load_provider() is None
        assert _blas._LOADED

    def test_discovery_runs_once(self, monkeypatch):
        monkeypatch.setattr(_blas, "_PROVIDER", None)
        monkeypatch.setattr(_blas, "_LOADED", False)
        monkeypatch.delenv(ENV_NO_BLAS, raising=False)
        calls = []
        provider = RecordingProvider()

        def fake_load():
            calls.append(1)
            return provider

        monkeypatch.setattr(_blas, "_load_cblas", fake_load)

        assert _blas.load_provider() is provider
        assert _blas.load_provider() is provider
        assert len(calls) == 1

        _blas.load_provider(force=True)
        assert len(calls) == 2

    def test_falls_back_to_scipy_when_no_cblas(self, monkeypatch):
        monkeypatch.setattr(_blas, "_PROVIDER", None)
        monkeypatch.setattr(_blas, "_LOADED", False)
        monkeypatch.delenv(ENV_NO_BLAS, raising=False)
        monkeypatch.setattr(_blas, "_load_cblas", lambda: None)
        sentinel = RecordingProvider()
        monkeypatch.setattr(_blas, "_load_scipy", lambda: sentinel)

        assert _blas.load_provider() is sentinel

    def test_library_hint_is_tried_first(self, monkeypatch):
        monkeypatch.setenv("MATRIXPROD_BLAS_LIB", "/opt/blas/libcustom.so")

        candidates = list(_blas._candidate_paths())

        assert candidates[0] == "/opt/blas/libcustom.so"

    def test_unloadable_candidates_are_skipped(self, monkeypatch):
        monkeypatch.setattr(_blas, "_candidate_paths", lambda: iter(["/nonexistent/libnothing.so"]))

        assert _blas._load_cblas() is None


@pytest.mark.skipif(not _blas.blas_available(), reason="no vendor BLAS on this host")
class TestRealBlas:
    """Agreement between the discovered BLAS and the naive reference."""

    @pytest.mark.parametrize("shape", [(1, 1, 1), (13, 7, 29), (64, 64, 64), (100, 37, 3)])
    @pytest.mark.parametrize("layout", list(Layout))
    def test_agrees_with_naive(self, shape, layout):
        m, k, n = shape
        rng = np.random.default_rng(11)
        a = from_array(rng.uniform(-1, 1, (m, k)), layout)
        b = from_array(rng.uniform(-1, 1, (k, n)), layout)

        expected = multiply_naive(a, b).as_2d()
        result = multiply_vendor(a, b, strict=True).as_2d()

        np.testing.assert_allclose(result, expected, rtol=1e-9, atol=1e-12)

    def test_vendor_is_described(self):
        assert _blas.blas_vendor()
