import asyncio
import os
from typing import Any, Dict, List

import ffmpeg
from loguru import logger

from mfuse.providers.base import VideoCompressorProvider
from mfuse.utils.error_handler import ProviderException, convert_exceptions


class FfmpegVideoCompressor(VideoCompressorProvider):
    """
    Single-pass H.264/AAC re-encode for delivery.

    Width is capped at ``max_width`` (aspect preserved, even height) and the
    moov atom is moved to the front so players can start before the download
    finishes.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.ffmpeg = config.get("ffmpeg_binary", "ffmpeg")
        self.video_codec = config.get("video_codec", "libx264")
        self.audio_codec = config.get("audio_codec", "aac")
        self.preset = config.get("preset", "slow")
        self.crf = config.get("crf", 28)
        self.audio_bitrate = config.get("audio_bitrate_kbps", 64)
        self.max_width = config.get("max_width", 720)

    def _probe(self, path: str) -> Dict[str, Any]:
        return ffmpeg.probe(path)

    def _build_command(self, input_path: str, output_path: str, has_audio: bool) -> List[str]:
        cmd = [
            self.ffmpeg,
            "-y",
            "-i",
            input_path,
            "-vf",
            f"scale='min({self.max_width},iw)':-2",
            "-c:v",
            self.video_codec,
            "-preset",
            self.preset,
            "-crf",
            str(self.crf),
        ]
        if has_audio:
            cmd += ["-c:a", self.audio_codec, "-b:a", f"{self.audio_bitrate}k"]
        else:
            cmd += ["-an"]
        cmd += ["-movflags", "+faststart", output_path]
        return cmd

    async def _run_and_log(self, command: List[str], description: str, input_path: str):
        logger.info(f"Starting: {description} of {input_path}")
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        out, err = await process.communicate()
        logger.debug(f"--- {description} stderr ---\n{err.decode(errors='replace').strip()}")
        if process.returncode != 0:
            logger.error(f"{description} failed. See log for details.")
            raise ProviderException(
                f"{description} failed with exit code {process.returncode}",
                details={"input_path": input_path},
            )
        logger.info(f"{description} completed successfully.")

    @convert_exceptions({Exception: ProviderException})
    async def compress(self, input_path: str, output_path: str, **kwargs) -> Dict[str, Any]:
        probe = await asyncio.to_thread(self._probe, input_path)
        has_audio = any(s["codec_type"] == "audio" for s in probe["streams"])

        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        cmd = self._build_command(input_path, output_path, has_audio)
        await self._run_and_log(cmd, "Compression", input_path)

        output_probe = await asyncio.to_thread(self._probe, output_path)
        if not any(s["codec_type"] == "video" for s in output_probe["streams"]):
            raise ProviderException("Compressed video has no video stream")

        original_size = os.path.getsize(input_path)
        compressed_size = os.path.getsize(output_path)
        ratio = (1 - compressed_size / original_size) * 100 if original_size else 0.0
        logger.info(
            f"Compression complete: {original_size} -> {compressed_size} bytes ({ratio:.1f}% smaller), "
            f"output saved to {output_path}"
        )
        return {
            "output_path": output_path,
            "original_size": original_size,
            "compressed_size": compressed_size,
            "duration": float(output_probe.get("format", {}).get("duration", 0.0) or 0.0),
        }
