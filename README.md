# arenakit

Building blocks for the non-rendering side of a small game: chunked binary
files, scene hierarchies loaded from those files, a software audio mixer
with 2D and 3D panning, WAV and PNG loading, a line-font glyph table, and a
z-up trackball camera.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `arenakit.hexdump`

`hex_dump(data)` takes any bytes-like object and returns an `xxd`-style dump:
rows of `ADDRADDR: xxxx xxxx ...  text`, 16 bytes per row, with non-printable
bytes shown as `.`. A final row is always written at the end offset, so data
that fills whole rows (including empty data) ends with a blank row.

### `arenakit.chunks`

A chunk is a four-byte magic tag, a four-byte little-endian payload size and
the payload.

- `read_chunk(stream, magic, item_size)` returns the payload; the size must
  be a multiple of `item_size`.
- `read_records(stream, magic, fmt)` unpacks the payload into a list of
  tuples with a `struct` format (little-endian and unaligned unless `fmt`
  gives its own byte-order prefix).
- `write_chunk(stream, magic, payload)` and
  `write_records(stream, magic, fmt, records)` write chunks back.

A missing or truncated header, a wrong magic tag, a size that is not a
multiple of the record size, or short data raise `ChunkError` (a
`ValueError`).

### `arenakit.pathfont`

`PathFont(glyph_widths, glyph_char_starts, chars, glyph_coord_starts, coords)`
holds the flat tables of a polyline font and builds `glyph_map`, from each
glyph's UTF-8 name to its index. Duplicate names give a warning and the
first one is kept. `lookup(text)` returns the index or raises `KeyError`.

### `arenakit.datapath`

`data_path(suffix)` returns `suffix` joined with `/` to the directory of the
running program (the frozen executable, or the script in `sys.argv[0]`,
falling back to the current directory).

### `arenakit.pngio`

- `load_png(path, origin)` returns `((width, height), pixels)`, where
  `pixels` is a `(height, width, 4)` `uint8` array. Palette and grey images
  are expanded to RGBA and missing alpha is filled with 255. Files that are
  not PNG raise `ValueError`.
- `save_png(path, size, data, origin)` writes `width * height` RGBA pixels.

`Origin.LOWER_LEFT` puts the bottom image row first; `Origin.UPPER_LEFT` the
top row.

### `arenakit.scene`

`Scene` holds lists of `Transform`, `Drawable`, `Camera` and `Light`.

- `Transform` has a name, position, `(w, x, y, z)` rotation, scale and an
  optional parent, and builds `(3, 4)` affine matrices with
  `make_local_to_parent`, `make_parent_to_local`, `make_local_to_world` and
  `make_world_to_local`. Zero scales give zero rows rather than NaNs.
- `Camera.make_projection()` returns a `(4, 4)` infinite perspective matrix
  from `fovy`, `aspect` and `near`.
- `Drawable` pairs a transform with a `Pipeline` of program, vertex array,
  primitive type, range, uniform locations and four `TextureInfo` slots.
- `Light` has a `LightType` (point, hemisphere, spot, directional), an
  energy colour and a spot field of view.

`Scene.from_file(filename, on_drawable)` and `Scene.load(filename,
on_drawable)` read the chunks `str0`, `xfh0`, `msh0`, `cam0` and `lmp0`.
`on_drawable(scene, transform, mesh_name)` is called for each mesh entry.
Non-perspective cameras and unknown lamp types are skipped with a log
message; trailing data is logged as a warning. Out-of-order parents, bad
name ranges and bad transform indices raise `SceneError`. After the
standard chunks, `load_extra` runs the scene's `extra_loader`, if set, to
read more.

`Scene.set(other)` makes the scene a deep copy of another, with parents and
attachments pointing at the new transforms, and returns the mapping from
old transforms to new. `Scene.copy()` returns such a copy.

Quaternion helpers: `quat_multiply`, `quat_inverse`, `quat_to_mat3`,
`angle_axis` and `quat_rotate`.

### `arenakit.sound`

Audio runs at 48 kHz mono.

- `load_wav(filename)` reads 8/16/24/32-bit PCM or 32/64-bit float WAV
  files, averages channels to mono, resamples other rates linearly and
  returns a `float32` array. Bad files raise `ValueError`.
- `Sample(data)` wraps audio; `Sample.from_file(filename)` loads `.wav`.
- `Mixer` keeps the playing samples, a global `volume` and a `listener`.
  `play`, `loop` (2D, panned from -1 left to 1 right), `play_3d` and
  `loop_3d` (panned from position relative to the listener) return a
  `PlayingSample`, whose `set_volume`, `set_pan`, `set_position`,
  `set_half_volume_radius` and `stop` change it smoothly over a ramp time.
  `stop_all_samples()` fades everything out and `set_volume()` changes the
  global volume. `Listener.set_position_right` moves the listener.
- `Mixer.mix()` returns the next block as a `(1024, 2)` `float32` array of
  left and right values, advancing all ramps by one block and dropping
  samples that have finished or faded out after a stop.

The panning and ramp steps are also available on their own:
`compute_pan_weights`, `compute_pan_from_listener_and_position`,
`step_value_ramp`, `step_position_ramp` and `step_direction_ramp`, with
`Ramp` holding a value, its target and the time left.

### `arenakit.orbit`

`OrbitCamera` orbits `target` at `radius` with `azimuth` and `elevation`.
`begin_drag()` notes whether the camera is upside-down, `drag(xrel, yrel,
window_size, pan, rotation)` tumbles the camera or, with `pan`, slides the
target, `dolly(wheel_y)` zooms within 0.1 to 1e6, and `apply(camera,
drawable_size)` places a `Camera`'s transform and sets its aspect.

## Example

```python
from arenakit.hexdump import hex_dump
from arenakit.sound import Mixer, Sample

print(hex_dump(b"hello, world"))

mixer = Mixer()
mixer.play(Sample([0.5] * 2048), volume=1.0, pan=0.0)
block = mixer.mix()
```

## What it does not do

arenakit does no drawing and opens no windows: pipelines and projection
matrices are plain data for a renderer to use. It has no audio output
device; `Mixer.mix()` only produces blocks for one to play. It has no
networking, game server or client, and no command-line programs. Opus
files are not decoded: `Sample.from_file` raises `ValueError` for them.