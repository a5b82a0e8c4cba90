import numpy as np
import pytest

from spectrascope.kernels import (
    CPP_LIBRARY_ID,
    compute_cos,
    compute_log,
    compute_magnitudes,
    compute_part_of_fft,
    extract_mono_samples,
    extract_stereo_samples,
    hann_window,
    load_library,
)
from spectrascope.options import LibraryOption


def test_load_cpp_library_id():
    kernels = load_library(LibraryOption.CPP)
    assert kernels.library_id == CPP_LIBRARY_ID == 67
    assert kernels.option is LibraryOption.CPP


def test_load_assembly_library():
    kernels = load_library(1)
    assert kernels.option is LibraryOption.ASSEMBLY
    assert kernels.library_id != CPP_LIBRARY_ID


def test_load_unknown_library_raises():
    with pytest.raises(ValueError):
        load_library(5)


@pytest.mark.parametrize("size", [2, 16, 101])
def test_hann_matches_numpy(size):
    result = hann_window(np.ones(size, dtype=np.float32))
    assert result.dtype == np.float32
    np.testing.assert_allclose(result, np.hanning(size), atol=1e-6)


def test_hann_empty():
    assert hann_window([]).size == 0


def test_hann_does_not_modify_input():
    data = np.ones(8, dtype=np.float32)
    result = hann_window(data)
    assert result[0] == pytest.approx(0.0, abs=1e-7)
    assert result[-1] == pytest.approx(0.0, abs=1e-6)
    assert data.tolist() == [1.0] * 8


def test_magnitudes_clamp_silence_to_zero():
    result = compute_magnitudes(np.zeros(16, dtype=np.complex64))
    assert np.all(result == 0.0)


def test_magnitude_value():
    result = compute_magnitudes(np.array([5 + 0j], dtype=np.complex64))
    assert result[0] == pytest.approx(20.0, abs=1e-3)


def test_magnitudes_monotonic_in_amplitude():
    amplitudes = np.linspace(0.0, 100.0, 50).astype(np.complex64)
    result = compute_magnitudes(amplitudes)
    assert result.size == 50
    assert result[0] == 0.0
    assert result[-1] == pytest.approx(46.0206, abs=1e-3)
    assert float(np.diff(result).min()) >= 0.0
    assert float(result.min()) >= 0.0


def test_magnitudes_ignore_phase():
    a = compute_magnitudes(np.array([3 + 4j], dtype=np.complex64))
    b = compute_magnitudes(np.array([5 + 0j], dtype=np.complex64))
    assert a[0] == pytest.approx(b[0], abs=1e-5)


def _stage_input(x, m):
    half = m // 2
    return np.concatenate([half * np.fft.ifft(x[0::2]), half * np.fft.ifft(x[1::2])])


@pytest.mark.parametrize("m", [16, 32, 64])
def test_part_of_fft_combines_halves(m):
    rng = np.random.default_rng(m)
    x = rng.normal(size=m) + 1j * rng.normal(size=m)
    w8 = np.exp(2j * np.pi * np.arange(8) / m)
    result = compute_part_of_fft(_stage_input(x, m), w8, m, m)
    np.testing.assert_allclose(result, m * np.fft.ifft(x), rtol=1e-4, atol=1e-4)


def test_part_of_fft_independent_groups():
    m = 16
    rng = np.random.default_rng(7)
    x1 = rng.normal(size=m)
    x2 = rng.normal(size=m)
    buffer = np.concatenate([_stage_input(x1, m), _stage_input(x2, m)])
    w8 = np.exp(2j * np.pi * np.arange(8) / m)
    result = compute_part_of_fft(buffer, w8, 2 * m, m)
    expected = np.concatenate([m * np.fft.ifft(x1), m * np.fft.ifft(x2)])
    np.testing.assert_allclose(result, expected, rtol=1e-4, atol=1e-4)


def test_part_of_fft_leaves_input_untouched():
    buffer = np.arange(16, dtype=np.complex64)
    before = buffer.copy()
    compute_part_of_fft(buffer, np.ones(8), 16, 16)
    assert np.array_equal(buffer, before)


@pytest.mark.parametrize("in_size,m", [(16, 8), (24, 16), (64, 16)])
def test_part_of_fft_rejects_bad_sizes(in_size, m):
    with pytest.raises(ValueError):
        compute_part_of_fft(np.zeros(32, dtype=np.complex64), np.ones(8), in_size, m)


def test_part_of_fft_rejects_bad_twiddles():
    with pytest.raises(ValueError):
        compute_part_of_fft(np.zeros(16, dtype=np.complex64), np.ones(4), 16, 16)


def test_extract_mono_scaling():
    raw = np.array([32767, -32768, 0, 1, -1, 100, -100, 5], dtype=np.int16)
    result = extract_mono_samples(raw, 1)
    assert result[0] == 1.0
    assert result[1] == -1.0
    assert result[2] == 0.0
    assert np.all(np.abs(result) <= 1.0)
    assert np.array_equal(np.sign(result), np.sign(raw))


def test_extract_mono_only_whole_blocks():
    raw = np.arange(20, dtype=np.int16)
    assert extract_mono_samples(raw, 2).size == 16


def test_extract_mono_too_short_raises():
    with pytest.raises(ValueError):
        extract_mono_samples(np.zeros(7, dtype=np.int16), 1)


def test_extract_stereo_of_duplicated_channels_matches_mono():
    mono = np.arange(-16000, 16000, 2000, dtype=np.int16)
    stereo = np.repeat(mono, 2)
    np.testing.assert_array_equal(
        extract_stereo_samples(stereo, 2), extract_mono_samples(mono, 2)
    )


def test_extract_stereo_full_scale_negative():
    raw = np.full(16, -32768, dtype=np.int16)
    result = extract_stereo_samples(raw, 1)
    assert result.size == 8
    assert result.tolist() == [-1.0] * 8


def test_extract_stereo_too_short_raises():
    with pytest.raises(ValueError):
        extract_stereo_samples(np.zeros(15, dtype=np.int16), 1)


def test_lane_primitives_match_numpy():
    values = np.linspace(0.1, 10.0, 8)
    np.testing.assert_allclose(compute_cos(values), np.cos(values), atol=1e-6)
    np.testing.assert_allclose(compute_log(values), np.log10(values), atol=1e-6)
    assert compute_cos(values).dtype == np.float32


def test_kernel_sets_agree():
    rng = np.random.default_rng(3)
    cpp = load_library(LibraryOption.CPP)
    lane = load_library(LibraryOption.ASSEMBLY)
    samples = rng.uniform(-1, 1, 64).astype(np.float32)
    np.testing.assert_allclose(cpp.hann_window(samples), lane.hann_window(samples), atol=1e-5)
    bins = (rng.normal(size=32) + 1j * rng.normal(size=32)).astype(np.complex64)
    np.testing.assert_allclose(
        cpp.compute_magnitudes(bins), lane.compute_magnitudes(bins), atol=1e-2
    )