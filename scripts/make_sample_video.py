import argparse
from pathlib import Path
import subprocess


def make_sample_video(output: Path, duration: float, size: str) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    # 彩色测试图案，便于肉眼确认灰度效果
    cmd = [
        "ffmpeg", "-y", "-f", "lavfi", "-i", f"testsrc=duration={duration}:size={size}:rate=30",
        "-c:v", "libx264", "-pix_fmt", "yuv420p", str(output),
    ]
    subprocess.run(cmd, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    return output


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a color test video for vidgray")
    parser.add_argument("output", nargs="?", default="assets/sample.mp4")
    parser.add_argument("--duration", type=float, default=12.0)
    parser.add_argument("--size", default="640x360")
    args = parser.parse_args()
    path = make_sample_video(Path(args.output), args.duration, args.size)
    print(f"Created {path}")
