import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import aiofiles.os
import ffmpeg
from loguru import logger

from mfuse.embedding_pipeline.core.outcomes import Frame
from mfuse.providers.base import MediaExtractor
from mfuse.utils.error_handler import ProviderException


class FfmpegMediaExtractor(MediaExtractor):
    """Audio and frame extraction through the ffmpeg binary."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.ffmpeg = config.get("ffmpeg_binary", "ffmpeg")
        self.frame_quality = config.get("frame_quality", 2)
        self.temp_dir = config.get("temp_dir") or tempfile.gettempdir()

    async def _run_and_log(self, command: List[str], description: str) -> bytes:
        logger.debug(f"Starting: {description}")
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        out, err = await process.communicate()
        if process.returncode != 0:
            stderr = err.decode(errors="replace").strip()
            logger.debug(f"--- {description} stderr ---\n{stderr}")
            raise ProviderException(
                f"{description} failed with exit code {process.returncode}",
                details={"stderr": stderr[-2000:]},
            )
        logger.debug(f"{description} completed successfully.")
        return out

    async def _write_input(self, work_dir: str, video_data: bytes) -> str:
        input_path = os.path.join(work_dir, "input.mp4")
        async with aiofiles.open(input_path, "wb") as f:
            await f.write(video_data)
        return input_path

    def _has_audio_stream(self, input_path: str) -> bool:
        probe = ffmpeg.probe(input_path)
        return any(s.get("codec_type") == "audio" for s in probe.get("streams", []))

    async def extract_audio(self, video_data: bytes, sample_rate: int, channels: int) -> bytes:
        work_dir = tempfile.mkdtemp(prefix="mfuse-audio-", dir=self.temp_dir)
        try:
            input_path = await self._write_input(work_dir, video_data)
            if not await asyncio.to_thread(self._has_audio_stream, input_path):
                return b""
            output_path = os.path.join(work_dir, "audio.wav")
            command = [
                self.ffmpeg, "-y", "-i", input_path,
                "-vn",
                "-acodec", "pcm_s16le",
                "-ar", str(sample_rate),
                "-ac", str(channels),
                output_path,
            ]
            await self._run_and_log(command, "Audio extraction")

            async with aiofiles.open(output_path, "rb") as f:
                return await f.read()
        finally:
            await asyncio.to_thread(shutil.rmtree, work_dir, True)

    async def extract_frames(self, video_data: bytes, fps: float, max_frames: int) -> List[Frame]:
        work_dir = tempfile.mkdtemp(prefix="mfuse-frames-", dir=self.temp_dir)
        try:
            input_path = await self._write_input(work_dir, video_data)
            pattern = os.path.join(work_dir, "frame_%04d.jpg")
            command = [
                self.ffmpeg, "-y", "-i", input_path,
                "-vf", f"fps={fps}",
                "-vframes", str(max_frames),
                "-q:v", str(self.frame_quality),
                pattern,
            ]
            await self._run_and_log(command, "Frame extraction")
            await aiofiles.os.remove(input_path)

            frames = []
            for index, path in enumerate(sorted(Path(work_dir).glob("frame_*.jpg"))):
                async with aiofiles.open(path, "rb") as f:
                    data = await f.read()
                frames.append(Frame(data=data, timestamp=index / fps, path=str(path)))
            if not frames:
                await asyncio.to_thread(shutil.rmtree, work_dir, True)
            logger.info(f"Extracted {len(frames)} frames at {fps} fps")
            return frames
        except Exception:
            await asyncio.to_thread(shutil.rmtree, work_dir, True)
            raise

    async def cleanup_frames(self, frames: List[Frame]) -> None:
        directories = set()
        for frame in frames:
            if not frame.path:
                continue
            directories.add(os.path.dirname(frame.path))
            if await aiofiles.os.path.exists(frame.path):
                await aiofiles.os.remove(frame.path)
        for directory in directories:
            # frames trimmed past max_frames share the directory with the kept ones
            if not any(Path(directory).glob("frame_*.jpg")):
                await asyncio.to_thread(shutil.rmtree, directory, True)
        logger.debug(f"Cleaned up {len(frames)} frames")
