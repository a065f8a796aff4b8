# deliveryencoder

A small desktop tool that makes delivery frame sequences from a master video.
It takes a `.mov` file, draws an overlay image that matches the chosen
resolution on top of it, and writes every frame as a 16-bit RGB PNG
(`<name>-000000.png`, `<name>-000001.png`, …) into a folder you choose.

FFmpeg and FFprobe do the actual work, so both must be installed.

## Requirements

- Python 3.10 or newer, with Tkinter.
- `ffmpeg` and `ffprobe` (`ffmpeg.exe` and `ffprobe.exe` on Windows). The tool
  looks for them in these places, in this order, and uses the first place that
  holds both:
  1. the current directory,
  2. `assets/ffmpeg/`,
  3. `ffmpeg/`,
  4. every directory on `PATH`.

## Assets directory

The window reads its inputs from an assets directory. By default this is
`assets` in the current directory:

```
assets/
  <your video>.mov       # the first .mov file, in name order; otherwise video.mov
  overlay_2k.png         # overlay for the 2K output
  overlay_4k.png         # overlay for the 4K output
  overlay_6k.png         # overlay for the original-size output
  instrukce.md           # optional; the text after "### instrukce ###" is shown
  krutart.rgba           # optional window icon: raw 256x256 RGBA pixels
```

## Running

```
pip install .
delivery-encoder
```

Use `delivery-encoder --assets PATH` to read the inputs from another directory.

1. Pick a resolution: **2K (2048x2048)**, **4K (4096x4096)** or
   **6K (Original)**. The 2K and 4K outputs are scaled with Lanczos and padded
   with black so that they stay square. The 6K output keeps the source size.
2. Choose an output directory. The tool then estimates the disk space the
   frames need: width × height × 6 bytes for each frame, times the frame count
   (duration × average frame rate, rounded up), plus 20%. **Start Encoding**
   stays disabled until that much space is free. If it is not, the window shows
   how much is needed and how much is available.
3. Press **Start Encoding**. While FFmpeg runs, the window shows the progress
   bar, the current file name and an estimate of the time left.

If the video name holds a resolution tag (`2k`, `4k`, `6k`, `2K`, `4K` or
`6K`), the output files take the tag of the resolution you chose. For example,
`video_6k.mov` rendered at 4K gives `video_4k-000000.png`, and so on.

**Open Output Folder** opens the output directory in the system file manager.

### Pausing and resuming

**Pause** stops FFmpeg and keeps the frames already written. When you start
again, the tool finds the highest frame number among the `<name>-NNNNNN.png`
files in the output folder. It seeks to that frame and goes on numbering from
it.

**Cancel** stops the job and keeps the frames. **Cancel and Delete** stops the
job and also deletes every file in the output folder whose name starts with the
output name and ends in `.png`. Both ask you to confirm first.

## Using it from Python

The encoding code works without the window:

```python
import queue
import threading
from pathlib import Path

from deliveryencoder.encoding import EncodingConfig, run_encoding
from deliveryencoder.models import Resolution
from deliveryencoder.utils import find_ffmpeg

ffmpeg, ffprobe = find_ffmpeg()
config = EncodingConfig(
    input_video=Path("assets/video_6k.mov"),
    overlay_image=Path("assets/overlay_4k.png"),
    output_dir=Path("out"),
    ffmpeg_path=ffmpeg,
    ffprobe_path=ffprobe,
    resolution=Resolution.K4,
    base_name="video_4k",
)
updates = queue.Queue()
run_encoding(config, updates, threading.Event())
```

- `run_encoding` blocks until FFmpeg finishes.
- Progress reports arrive on the queue as `ProgressUpdate(progress, frame, message)`
  items. A progress of 100 means the job is done, and -2 means it was paused.
- Setting the event stops FFmpeg.
- A failing FFmpeg raises `EncodingError`. An FFprobe failure raises
  `deliveryencoder.utils.ProbeError`.

Other building blocks:

- `deliveryencoder.utils`: `get_resolution`, `get_duration` and
  `get_frame_rate` probe a video. `parse_resolution`, `parse_duration` and
  `parse_frame_rate` parse FFprobe output.
- `deliveryencoder.encoding`: `build_filter_complex` and `build_command` build
  the FFmpeg filter graph and the full argument list. `find_max_frame` finds
  the highest frame number already rendered.
- `deliveryencoder.app.EncoderState`: holds the state the window shows. This
  covers the settings, the storage check, starting, pausing and cancelling a
  job, and `poll()` to apply progress reports.

## What it does not do

There is no command-line mode for encoding. A job is started from the window,
or from Python as shown above. Only PNG frame sequences are written. The tool
does not produce video files.