import logging

import pytest

import ConvParallel
import ConvParallelAdvanced
import ConvSeq
from conftest import random_buffer, uniform_buffer
from ConvEngine import convolve, convolve_timed
from Errors import ConfigurationError
from Kernels import get_kernel


@pytest.mark.parametrize("name", ["blur", "laplace", "sharpen"])
def test_all_backends_match_sequential(rgb_10x10, name):
    kernel = get_kernel(name)
    expected = ConvSeq.apply_convolution(rgb_10x10, kernel)

    assert convolve(rgb_10x10, kernel, n_jobs=3, backend="threads") == expected
    assert convolve(rgb_10x10, kernel, strategy="quadrants") == expected
    assert convolve(rgb_10x10, kernel, n_jobs=3, backend="processes") == expected
    assert convolve(rgb_10x10, kernel, n_jobs=3, backend="distributed", distribution="halo") == expected
    assert convolve(rgb_10x10, kernel, n_jobs=3, backend="distributed", distribution="broadcast") == expected


@pytest.mark.parametrize("backend", ["threads", "processes", "distributed"])
def test_worker_counts_do_not_change_the_result(rgb_10x10, backend):
    kernel = get_kernel("sharpen")
    results = [convolve(rgb_10x10, kernel, n_jobs=n, backend=backend) for n in (1, 3, 7)]

    assert results[0] == results[1] == results[2]
    assert results[0] == ConvSeq.apply_convolution(rgb_10x10, kernel)


def test_more_workers_than_rows(gray_odd):
    kernel = get_kernel("laplace")
    expected = ConvSeq.apply_convolution(gray_odd, kernel)

    assert ConvParallel.apply_convolution(gray_odd, kernel, n_jobs=50) == expected
    assert ConvParallelAdvanced.apply_convolution(gray_odd, kernel, n_jobs=50) == expected


@pytest.mark.parametrize("width,height", [(1, 1), (1, 5), (5, 1), (3, 2)])
def test_quadrants_on_small_images(width, height):
    buf = random_buffer(width, height, "grayscale", seed=width * 10 + height)
    kernel = get_kernel("sharpen")

    out = ConvParallel.apply_convolution(buf, kernel, strategy="quadrants")

    assert out == ConvSeq.apply_convolution(buf, kernel)


def test_blur_on_uniform_image_is_uniform_inside():
    buf = uniform_buffer(9, 9, 100, format_tag="rgb")
    out = convolve(buf, "blur", n_jobs=4, backend="threads")
    assert set(out.grid[1:-1, 1:-1].reshape(-1).tolist()) == {100}


def test_input_is_not_modified(rgb_10x10):
    before = rgb_10x10.copy()
    convolve(rgb_10x10, "sharpen", n_jobs=4, backend="threads")
    convolve(rgb_10x10, "sharpen", n_jobs=4, backend="processes")
    assert rgb_10x10 == before


def test_kernel_by_name_and_default_workers(rgb_10x10):
    out = convolve(rgb_10x10, "blur")
    assert out == ConvSeq.apply_convolution(rgb_10x10, get_kernel("blur"))


def test_convolve_timed(rgb_10x10):
    out, elapsed = convolve_timed(rgb_10x10, "blur", n_jobs=2)
    assert elapsed >= 0
    assert out.meta == rgb_10x10.meta


@pytest.mark.parametrize("kwargs", [
    {"n_jobs": 0},
    {"n_jobs": -1},
    {"backend": "cuda"},
    {"strategy": "columns"},
    {"strategy": "quadrants", "backend": "processes"},
    {"strategy": "quadrants", "backend": "distributed"},
    {"backend": "threads", "distribution": "halo"},
    {"backend": "distributed", "distribution": "scatter"},
])
def test_configuration_errors(rgb_10x10, kwargs):
    with pytest.raises(ConfigurationError):
        convolve(rgb_10x10, get_kernel("blur"), **kwargs)


def test_unknown_filter_name(rgb_10x10):
    with pytest.raises(ConfigurationError):
        convolve(rgb_10x10, "emboss")


def test_rejects_non_buffer_input():
    with pytest.raises(ConfigurationError):
        convolve([[1, 2], [3, 4]], "blur")


def test_shared_segments_released_when_output_segment_fails(rgb_10x10, monkeypatch):
    real = ConvParallelAdvanced.shared_memory.SharedMemory
    created = []

    def fake_segment(*args, create=False, **kwargs):
        if create and created:
            raise OSError("no space left on device")
        shm = real(*args, create=create, **kwargs)
        if create:
            created.append(shm.name)
        return shm

    monkeypatch.setattr(ConvParallelAdvanced.shared_memory, "SharedMemory", fake_segment)

    with pytest.raises(OSError):
        ConvParallelAdvanced.apply_convolution(rgb_10x10, get_kernel("blur"), n_jobs=2)

    monkeypatch.undo()
    assert len(created) == 1
    with pytest.raises(FileNotFoundError):
        real(name=created[0])


def test_each_region_dispatch_is_logged(rgb_10x10, caplog):
    with caplog.at_level(logging.DEBUG, logger="ConvParallel"):
        ConvParallel.apply_convolution(rgb_10x10, get_kernel("blur"), n_jobs=3)

    regions = [r for r in caplog.records if r.name == "ConvParallel" and "region" in r.getMessage()]
    assert len(regions) == 3
