"""TensorFlow escape-time kernel."""

from __future__ import annotations

from typing import Optional

import numpy as np
import tensorflow as tf

from .escape import HORIZON_SQUARED


@tf.function
def _escape_step(
    i: tf.Tensor, zr: tf.Tensor, zi: tf.Tensor, cr: tf.Tensor, ci: tf.Tensor, counts: tf.Tensor, active: tf.Tensor
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Record escapes at step ``i`` and advance the points still in play."""

    horizon = tf.constant(HORIZON_SQUARED, dtype=zr.dtype)
    escaped = tf.logical_and(active, zr * zr + zi * zi > horizon)
    counts = tf.where(escaped, tf.fill(tf.shape(counts), i), counts)
    active = tf.logical_and(active, tf.logical_not(escaped))
    two = tf.constant(2.0, dtype=zr.dtype)
    zr_new = zr * zr - zi * zi + cr
    zi_new = two * (zr * zi) + ci
    zr = tf.where(active, zr_new, zr)
    zi = tf.where(active, zi_new, zi)
    return zr, zi, counts, active


@tf.function
def _escape_run(cr: tf.Tensor, ci: tf.Tensor, limit: tf.Tensor) -> tf.Tensor:
    """Iterate the quadratic map with a TensorFlow while loop."""

    limit = tf.cast(limit, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    zr = tf.zeros_like(cr)
    zi = tf.zeros_like(ci)
    counts = tf.fill(tf.shape(cr), tf.constant(-1, dtype=tf.int32))
    active = tf.ones_like(counts, tf.bool)

    def cond(i: tf.Tensor, zr: tf.Tensor, zi: tf.Tensor, counts: tf.Tensor, active: tf.Tensor) -> tf.Tensor:
        return tf.logical_and(tf.less(i, limit), tf.reduce_any(active))

    def body(
        i: tf.Tensor, zr: tf.Tensor, zi: tf.Tensor, counts: tf.Tensor, active: tf.Tensor
    ) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
        zr, zi, counts, active = _escape_step(i, zr, zi, cr, ci, counts, active)
        return i + 1, zr, zi, counts, active

    _, _, _, counts, _ = tf.while_loop(cond, body, (i, zr, zi, counts, active))
    return counts


def escape_counts(c_real: np.ndarray, c_imag: np.ndarray, limit: int, *, device: Optional[str] = None) -> np.ndarray:
    """TensorFlow counterpart of :func:`mandelbrot.escape.escape_counts`."""

    c_real, c_imag = np.broadcast_arrays(
        np.asarray(c_real, dtype=np.float64), np.asarray(c_imag, dtype=np.float64)
    )
    with tf.device(device if device is not None else "/CPU:0"):
        cr = tf.convert_to_tensor(c_real, dtype=tf.float64)
        ci = tf.convert_to_tensor(c_imag, dtype=tf.float64)
        counts = _escape_run(cr, ci, tf.constant(limit, dtype=tf.int32))
    return counts.numpy().astype(np.int64)
