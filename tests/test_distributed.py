import logging

import numpy as np
import pytest

import ConvDistributed
import ConvSeq
from Assembler import PartialResult, assemble
from conftest import random_buffer
from ConvDistributed import (BROADCAST_THRESHOLD, ScatterPayload, resolve_distribution,
                             run_worker, scatter)
from ConvEngine import convolve
from Errors import DistributionError
from Kernels import get_kernel
from Partition import Region, row_bands


@pytest.fixture
def image():
    return random_buffer(6, 10, "rgb", seed=11)


def test_halo_scatter_sends_band_plus_radius_rows(image):
    regions = row_bands(image.width, image.height, 3)   # rows 0-4, 4-7, 7-10
    payloads = scatter(image, regions, radius=1, distribution="halo")

    row_length = image.meta.row_length
    assert [p.rank for p in payloads] == [0, 1, 2]
    assert [p.row_offset for p in payloads] == [0, 3, 6]
    assert [p.samples.size // row_length for p in payloads] == [5, 5, 4]
    assert np.array_equal(payloads[1].samples, image.samples[3 * row_length:8 * row_length])


def test_broadcast_scatter_sends_whole_image(image):
    regions = row_bands(image.width, image.height, 3)
    for p in scatter(image, regions, radius=1, distribution="broadcast"):
        assert p.row_offset == 0
        assert np.array_equal(p.samples, image.samples)


def test_auto_distribution_picks_broadcast_for_small_images(image):
    assert resolve_distribution("auto", image.meta) == "broadcast"
    big = random_buffer(BROADCAST_THRESHOLD, 2, "grayscale")
    assert resolve_distribution("auto", big.meta) == "halo"
    assert resolve_distribution("broadcast", big.meta) == "broadcast"


@pytest.mark.parametrize("distribution", ["halo", "broadcast"])
def test_workers_and_gather_in_process(image, distribution):
    kernel = get_kernel("sharpen")
    regions = row_bands(image.width, image.height, 4)
    payloads = scatter(image, regions, kernel.radius, distribution)

    partials = [run_worker(image.meta, kernel.weights, p) for p in payloads]

    assert [p.offset for p in partials] == [r.sample_span(6, 3)[0] for r in regions]
    assert assemble(image.meta, regions, partials) == ConvSeq.apply_convolution(image, kernel)


def test_gather_is_keyed_by_rank_not_arrival_order(image):
    kernel = get_kernel("blur")
    regions = row_bands(image.width, image.height, 3)
    partials = [run_worker(image.meta, kernel.weights, p)
                for p in scatter(image, regions, kernel.radius, "halo")]

    out = assemble(image.meta, regions, list(reversed(partials)))

    assert out == ConvSeq.apply_convolution(image, kernel)


def test_worker_rejects_payload_without_halo(image):
    kernel = get_kernel("blur")
    region = Region(4, 7, 0, image.width)
    row_length = image.meta.row_length
    payload = ScatterPayload(1, region, 4, image.samples[4 * row_length:7 * row_length])

    with pytest.raises(DistributionError):
        run_worker(image.meta, kernel.weights, payload)


@pytest.mark.parametrize("samples", [None, np.zeros(0, dtype=np.int32), np.zeros(7, dtype=np.int32)])
def test_worker_rejects_truncated_payload(image, samples):
    payload = ScatterPayload(0, Region(0, 2, 0, image.width), 0, samples)
    with pytest.raises(DistributionError):
        run_worker(image.meta, get_kernel("blur").weights, payload)


def test_worker_rejects_rows_outside_image(image):
    row_length = image.meta.row_length
    payload = ScatterPayload(0, Region(9, 10, 0, image.width), 8, np.zeros(3 * row_length, dtype=np.int32))
    with pytest.raises(DistributionError):
        run_worker(image.meta, get_kernel("blur").weights, payload)


def _partials(image, regions):
    kernel = get_kernel("laplace")
    return [run_worker(image.meta, kernel.weights, p)
            for p in scatter(image, regions, kernel.radius, "halo")]


def test_assemble_rejects_wrong_offset(image):
    regions = row_bands(image.width, image.height, 2)
    partials = _partials(image, regions)
    bad = partials[1]._replace(offset=partials[1].offset - image.meta.row_length)

    with pytest.raises(DistributionError):
        assemble(image.meta, regions, [partials[0], bad])


def test_assemble_rejects_short_result(image):
    regions = row_bands(image.width, image.height, 2)
    partials = _partials(image, regions)
    bad = partials[0]._replace(samples=partials[0].samples[:-1])

    with pytest.raises(DistributionError):
        assemble(image.meta, regions, [bad, partials[1]])


def test_assemble_rejects_missing_and_duplicate_ranks(image):
    regions = row_bands(image.width, image.height, 3)
    partials = _partials(image, regions)

    with pytest.raises(DistributionError):
        assemble(image.meta, regions, partials[:2])
    with pytest.raises(DistributionError):
        assemble(image.meta, regions, partials + [partials[0]])
    with pytest.raises(DistributionError):
        assemble(image.meta, regions, partials[:2] + [partials[2]._replace(rank=5)])


def test_assemble_rejects_quadrant_regions(image):
    regions = [Region(0, 10, 0, 3), Region(0, 10, 3, 6)]
    with pytest.raises(DistributionError):
        assemble(image.meta, regions, [])


def test_missing_input_aborts_job():
    with pytest.raises(DistributionError):
        ConvDistributed.apply_convolution(None, get_kernel("blur"))


def test_full_job_on_worker_processes(image):
    kernel = get_kernel("laplace")
    out = ConvDistributed.apply_convolution(image, kernel, n_jobs=3, distribution="halo")
    assert out == ConvSeq.apply_convolution(image, kernel)


def test_partial_result_fields():
    part = PartialResult(2, 30, 12, np.zeros(12))
    assert (part.rank, part.offset, part.length) == (2, 30, 12)


def test_worker_failure_in_worker_process_aborts_job(image, monkeypatch):
    real_scatter = ConvDistributed.scatter

    def scatter_without_halo(buffer, regions, radius, distribution):
        payloads = real_scatter(buffer, regions, radius, distribution)
        region = payloads[1].region
        row_length = buffer.meta.row_length
        rows = buffer.samples[region.start_row * row_length:region.end_row * row_length]
        payloads[1] = ScatterPayload(1, region, region.start_row, rows)
        return payloads

    monkeypatch.setattr(ConvDistributed, "scatter", scatter_without_halo)

    with pytest.raises(DistributionError):
        convolve(image, get_kernel("blur"), n_jobs=3, backend="distributed", distribution="halo")


def test_bad_payload_is_logged_before_raising(image, caplog):
    payload = ScatterPayload(0, Region(0, 2, 0, image.width), 0, np.zeros(7, dtype=np.int32))

    with caplog.at_level(logging.ERROR, logger="ConvDistributed"):
        with pytest.raises(DistributionError):
            run_worker(image.meta, get_kernel("blur").weights, payload)

    assert any("Rank 0" in r.getMessage() for r in caplog.records if r.levelno == logging.ERROR)
