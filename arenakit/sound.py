"""Software audio mixing: mono samples, ramped controls, 2D and 3D panning.

Everything runs at 48 kHz. A :class:`Mixer` keeps the list of playing
samples and produces stereo blocks of :data:`MIX_SAMPLES` frames from
:meth:`Mixer.mix`; an audio output callback would call it once per block.
"""

from __future__ import annotations

import logging
import math
import struct
import threading
from typing import List, Optional, Tuple

import numpy as np

log = logging.getLogger(__name__)

AUDIO_RATE = 48000
MIX_SAMPLES = 1024
RAMP_STEP = MIX_SAMPLES / AUDIO_RATE
DEFAULT_RAMP = 1.0 / 60.0

_PI = 3.1415926
_WAVE_PCM = 1
_WAVE_FLOAT = 3
_WAVE_EXTENSIBLE = 0xFFFE


def _copy_value(value):
    if isinstance(value, (int, float)):
        return float(value)
    return np.array(value, dtype=float)


def _vec3(values) -> np.ndarray:
    return np.array(values, dtype=float).reshape(3)


class Ramp:
    """A value that moves smoothly to a target over ``ramp`` seconds."""

    def __init__(self, value) -> None:
        self.value = _copy_value(value)
        self.target = _copy_value(value)
        self.ramp = 0.0

    def set(self, value, ramp: float) -> None:
        """Head toward ``value`` over ``ramp`` seconds, or jump if ``ramp <= 0``."""
        if ramp <= 0.0:
            self.value = _copy_value(value)
            self.target = _copy_value(value)
            self.ramp = 0.0
        else:
            self.target = _copy_value(value)
            self.ramp = float(ramp)

    def __repr__(self) -> str:
        return f"Ramp(value={self.value!r}, target={self.target!r}, ramp={self.ramp!r})"


# ---------------------------------------------------------------- WAV loading


def _decode_pcm(payload: bytes, code: int, bits: int, filename) -> np.ndarray:
    if code == _WAVE_PCM:
        if bits == 8:
            return (np.frombuffer(payload, dtype=np.uint8).astype(float) - 128.0) / 128.0
        if bits == 16:
            return np.frombuffer(payload, dtype="<i2").astype(float) / 32768.0
        if bits == 24:
            b = np.frombuffer(payload, dtype=np.uint8).reshape(-1, 3).astype(np.int64)
            v = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
            v = np.where(v & 0x800000, v - 0x1000000, v)
            return v.astype(float) / 8388608.0
        if bits == 32:
            return np.frombuffer(payload, dtype="<i4").astype(float) / 2147483648.0
    elif code == _WAVE_FLOAT:
        if bits == 32:
            return np.frombuffer(payload, dtype="<f4").astype(float)
        if bits == 64:
            return np.frombuffer(payload, dtype="<f8").astype(float)
    raise ValueError(
        f"Failed to load WAV file '{filename}': unsupported format "
        f"(code {code}, {bits} bits)"
    )


def load_wav(filename) -> np.ndarray:
    """Load a WAV file as 48 kHz mono float32 samples; raises on error.

    Multi-channel audio is downmixed by averaging and other sampling rates
    are resampled linearly.
    """
    with open(filename, "rb") as stream:
        raw = stream.read()
    if len(raw) < 12 or raw[0:4] != b"RIFF" or raw[8:12] != b"WAVE":
        raise ValueError(f"Failed to load WAV file '{filename}': not a RIFF/WAVE file")

    fmt: Optional[bytes] = None
    payload: Optional[bytes] = None
    pos = 12
    while pos + 8 <= len(raw):
        chunk_id, size = struct.unpack_from("<4sI", raw, pos)
        body = raw[pos + 8:pos + 8 + size]
        if chunk_id == b"fmt ":
            fmt = body
        elif chunk_id == b"data":
            payload = body
        pos += 8 + size + (size & 1)

    if fmt is None or len(fmt) < 16:
        raise ValueError(f"Failed to load WAV file '{filename}': missing format chunk")
    if payload is None:
        raise ValueError(f"Failed to load WAV file '{filename}': missing data chunk")

    code, channels, rate, _byte_rate, _block_align, bits = struct.unpack_from("<HHIIHH", fmt)
    if code == _WAVE_EXTENSIBLE and len(fmt) >= 26:
        code = struct.unpack_from("<H", fmt, 24)[0]
    if channels == 0 or rate == 0 or bits == 0:
        raise ValueError(f"Failed to load WAV file '{filename}': invalid format chunk")

    frame_bytes = channels * ((bits + 7) // 8)
    payload = payload[:len(payload) - len(payload) % frame_bytes]
    samples = _decode_pcm(payload, code, bits, filename)
    mono = samples.reshape(-1, channels).mean(axis=1) if channels > 1 else samples

    if code != _WAVE_FLOAT or bits != 32 or channels != 1 or rate != AUDIO_RATE:
        log.info("WAV file '%s' didn't load as %d Hz, float32, mono; converting.",
                 filename, AUDIO_RATE)

    if rate != AUDIO_RATE and len(mono) > 0:
        out_len = int(round(len(mono) * AUDIO_RATE / rate))
        positions = np.arange(out_len) * (rate / AUDIO_RATE)
        mono = np.interp(positions, np.arange(len(mono)), mono)

    data = np.asarray(mono, dtype=np.float32)
    low = min(0.0, float(data.min())) if len(data) else 0.0
    high = max(0.0, float(data.max())) if len(data) else 0.0
    log.info("Range: %g, %g", low, high)
    return data


# ---------------------------------------------------------------- samples


class Sample:
    """Mono 48 kHz floating-point audio."""

    def __init__(self, data) -> None:
        self.data = np.array(data, dtype=np.float32).reshape(-1)

    @classmethod
    def from_file(cls, filename) -> "Sample":
        """Load a sample from a ``.wav`` file."""
        name = str(filename)
        if name.endswith(".wav"):
            return cls(load_wav(filename))
        if name.endswith(".opus"):
            raise ValueError(f"Sample '{name}': opus decoding is not available.")
        raise ValueError(
            f"Sample '{name}' doesn't end in either \".wav\" or \".opus\" "
            "-- unsure how to load."
        )

    def __len__(self) -> int:
        return len(self.data)


class PlayingSample:
    """Bookkeeping for a sample that is currently playing.

    A sample plays in "2D" mode (``pan`` set, position NaN) or in "3D" mode
    (``pan`` NaN, position and half-volume radius set).
    """

    def __init__(self, sample: Sample, volume: float = 1.0, *, pan: float = math.nan,
                 position=None, half_volume_radius: float = math.nan,
                 loop: bool = False, lock=None) -> None:
        self.data = sample.data
        self.i = 0
        self.loop = loop
        self.stopping = False
        self.stopped = False
        self.volume = Ramp(float(volume))
        self.pan = Ramp(float(pan))
        self.position = Ramp(_vec3([math.nan] * 3 if position is None else position))
        self.half_volume_radius = Ramp(float(half_volume_radius))
        self._lock = lock if lock is not None else threading.RLock()

    @property
    def is_3d(self) -> bool:
        return math.isnan(self.pan.value)

    def set_volume(self, new_volume: float, ramp: float = DEFAULT_RAMP) -> None:
        with self._lock:
            if not self.stopping:
                self.volume.set(float(new_volume), ramp)

    def set_pan(self, new_pan: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change panning; ignored for samples in 3D mode."""
        if self.is_3d:
            return
        with self._lock:
            self.pan.set(float(new_pan), ramp)

    def set_position(self, new_position, ramp: float = DEFAULT_RAMP) -> None:
        """Change position; ignored for samples in 2D mode."""
        if not self.is_3d:
            return
        with self._lock:
            self.position.set(_vec3(new_position), ramp)

    def set_half_volume_radius(self, new_radius: float, ramp: float = DEFAULT_RAMP) -> None:
        """Change the half-volume radius; ignored for samples in 2D mode."""
        if not self.is_3d:
            return
        with self._lock:
            self.half_volume_radius.set(float(new_radius), ramp)

    def stop(self, ramp: float = DEFAULT_RAMP) -> None:
        """Fade out over ``ramp`` seconds, after which the mixer drops the sample."""
        with self._lock:
            if not (self.stopping or self.stopped):
                self.stopping = True
                self.volume.target = 0.0
                self.volume.ramp = float(ramp)
            else:
                self.volume.ramp = min(self.volume.ramp, float(ramp))


class Listener:
    """Position and right-pointing unit vector used to pan 3D samples."""

    def __init__(self, lock=None) -> None:
        self.position = Ramp(_vec3([0.0, 0.0, 0.0]))
        self.right = Ramp(_vec3([1.0, 0.0, 0.0]))
        self._lock = lock if lock is not None else threading.RLock()

    def set_position_right(self, new_position, new_right,
                           ramp: float = DEFAULT_RAMP) -> None:
        with self._lock:
            self.position.set(_vec3(new_position), ramp)
            right = _vec3(new_right)
            if not right.any():
                self.right.set(_vec3([1.0, 0.0, 0.0]), ramp)
            else:
                self.right.set(right / np.linalg.norm(right), ramp)


# ---------------------------------------------------------------- panning helpers


def compute_pan_weights(pan: float) -> Tuple[float, float]:
    """Equal-power (left, right) weights for ``pan`` in [-1, 1]."""
    pan = max(-1.0, min(1.0, pan))
    ang = 0.5 * _PI * (0.5 * (pan + 1.0))
    return math.cos(ang), math.sin(ang)


def compute_pan_from_listener_and_position(listener_position, listener_right,
                                           source_position,
                                           source_half_radius: float) -> Tuple[float, float]:
    """(left, right) weights for a source relative to the listener.

    Attenuation is linear in distance, reaching one half at
    ``source_half_radius``.
    """
    to = _vec3(source_position) - _vec3(listener_position)
    distance = float(np.linalg.norm(to))
    if distance == 0.0:
        both = math.sqrt(2.0)
        return both, both
    amt = float(np.dot(_vec3(listener_right), to)) / distance
    ang = 0.5 * _PI * (0.5 * (amt + 1.0))
    if source_half_radius == 0.0:
        att = 0.0
    else:
        att = 1.0 / (1.0 + distance / source_half_radius)
    return math.cos(ang) * att, math.sin(ang) * att


def step_value_ramp(ramp: Ramp) -> None:
    """Advance a scalar ramp by one mix block."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = ramp.target
        ramp.ramp = 0.0
    else:
        ramp.value += (RAMP_STEP / ramp.ramp) * (ramp.target - ramp.value)
        ramp.ramp -= RAMP_STEP


def step_position_ramp(ramp: Ramp) -> None:
    """Advance a position ramp by one mix block (linear interpolation)."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = np.array(ramp.target, dtype=float)
        ramp.ramp = 0.0
    else:
        t = RAMP_STEP / ramp.ramp
        ramp.value = ramp.value + t * (ramp.target - ramp.value)
        ramp.ramp -= RAMP_STEP


def step_direction_ramp(ramp: Ramp) -> None:
    """Advance a unit-direction ramp by one mix block, rotating toward the target."""
    if ramp.ramp < RAMP_STEP:
        ramp.value = np.array(ramp.target, dtype=float)
        ramp.ramp = 0.0
        return
    target = ramp.target
    norm = np.cross(ramp.value, target)
    if not norm.any():
        if target[0] <= target[1] and target[0] <= target[2]:
            norm = _vec3([1.0, 0.0, 0.0])
        elif target[1] <= target[2]:
            norm = _vec3([0.0, 1.0, 0.0])
        else:
            norm = _vec3([0.0, 0.0, 1.0])
        norm = norm - target * float(np.dot(target, norm))
    norm = norm / np.linalg.norm(norm)
    perp = np.cross(norm, target)
    angle = math.acos(max(-1.0, min(1.0, float(np.dot(ramp.value, target)))))
    angle *= (ramp.ramp - RAMP_STEP) / ramp.ramp
    ramp.value = target * math.cos(angle) + perp * math.sin(angle)
    ramp.ramp -= RAMP_STEP


# ---------------------------------------------------------------- mixer


class Mixer:
    """Holds playing samples, the global volume and the listener."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.volume = Ramp(1.0)
        self.listener = Listener(lock=self._lock)
        self.playing_samples: List[PlayingSample] = []

    def _start(self, playing: PlayingSample) -> PlayingSample:
        with self._lock:
            self.playing_samples.append(playing)
        return playing

    def play(self, sample: Sample, volume: float = 1.0, pan: float = 0.0) -> PlayingSample:
        """Play ``sample`` once; ``pan`` runs from -1 (left) to 1 (right)."""
        return self._start(PlayingSample(sample, volume, pan=pan, loop=False, lock=self._lock))

    def play_3d(self, sample: Sample, volume: float, position,
                half_volume_radius: float = math.inf) -> PlayingSample:
        """Play ``sample`` once, panned by its position relative to the listener."""
        return self._start(PlayingSample(
            sample, volume, position=position, half_volume_radius=half_volume_radius,
            loop=False, lock=self._lock))

    def loop(self, sample: Sample, volume: float = 1.0, pan: float = 0.0) -> PlayingSample:
        """Play ``sample`` repeatedly until stopped."""
        return self._start(PlayingSample(sample, volume, pan=pan, loop=True, lock=self._lock))

    def loop_3d(self, sample: Sample, volume: float, position,
                half_volume_radius: float = math.inf) -> PlayingSample:
        """Loop ``sample`` in 3D mode."""
        return self._start(PlayingSample(
            sample, volume, position=position, half_volume_radius=half_volume_radius,
            loop=True, lock=self._lock))

    def stop_all_samples(self) -> None:
        with self._lock:
            for playing in self.playing_samples:
                playing.stop()

    def set_volume(self, new_volume: float, ramp: float = DEFAULT_RAMP) -> None:
        with self._lock:
            self.volume.set(float(new_volume), ramp)

    def _weights(self, playing: PlayingSample, position, right) -> Tuple[float, float]:
        if playing.is_3d:
            return compute_pan_from_listener_and_position(
                position, right, playing.position.value, playing.half_volume_radius.value)
        return compute_pan_weights(playing.pan.value)

    def _mix_one(self, playing: PlayingSample, out: np.ndarray,
                 start_volume, start_position, start_right,
                 end_volume, end_position, end_right) -> bool:
        start_l, start_r = self._weights(playing, start_position, start_right)
        if playing.is_3d:
            step_position_ramp(playing.position)
            step_value_ramp(playing.half_volume_radius)
        else:
            step_value_ramp(playing.pan)
        gain = start_volume * playing.volume.value
        start_l, start_r = start_l * gain, start_r * gain

        step_value_ramp(playing.volume)

        end_l, end_r = self._weights(playing, end_position, end_right)
        gain = end_volume * playing.volume.value
        end_l, end_r = end_l * gain, end_r * gain

        data = playing.data
        length = len(data)
        if length == 0 or playing.i >= length:
            return True

        steps = np.arange(MIX_SAMPLES)
        if playing.loop:
            count = MIX_SAMPLES
            indices = (playing.i + steps) % length
            playing.i = (playing.i + MIX_SAMPLES) % length
        else:
            count = min(MIX_SAMPLES, length - playing.i)
            indices = playing.i + steps[:count]
            playing.i += count

        k = steps[:count]
        values = data[indices].astype(float)
        pan_l = start_l + k * ((end_l - start_l) / MIX_SAMPLES)
        pan_r = start_r + k * ((end_r - start_r) / MIX_SAMPLES)
        out[:count, 0] += (pan_l * values).astype(np.float32)
        out[:count, 1] += (pan_r * values).astype(np.float32)

        return playing.i >= length or (playing.stopping and playing.volume.value == 0.0)

    def mix(self) -> np.ndarray:
        """Mix the next block; returns a ``(MIX_SAMPLES, 2)`` float32 array of (left, right)."""
        out = np.zeros((MIX_SAMPLES, 2), dtype=np.float32)
        with self._lock:
            start_volume = self.volume.value
            start_position = np.array(self.listener.position.value)
            start_right = np.array(self.listener.right.value)

            step_value_ramp(self.volume)
            step_position_ramp(self.listener.position)
            step_direction_ramp(self.listener.right)

            end_volume = self.volume.value
            end_position = np.array(self.listener.position.value)
            end_right = np.array(self.listener.right.value)

            remaining: List[PlayingSample] = []
            for playing in self.playing_samples:
                finished = self._mix_one(playing, out,
                                         start_volume, start_position, start_right,
                                         end_volume, end_position, end_right)
                if finished:
                    playing.stopped = True
                else:
                    remaining.append(playing)
            self.playing_samples = remaining
        return out