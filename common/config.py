from pydantic_settings import BaseSettings


class IngestSettings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8000
    input_file: str = ""
    output_dir: str = "output"
    transcript_file: str = "transcript.json"
    transcript_title: str = "Transcript"
    poll_interval_s: float = 5.0
    transcript_batch_size: int = 3
    log_level: str = "INFO"

    # Encoder ladder
    ffmpeg_path: str = "ffmpeg"
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    video_bitrate: str = "800k"
    hls_time_s: int = 5
    hls_list_size: int = 0

    # Local and remote naming
    manifest_name: str = "stream.m3u8"
    segment_prefix: str = "segment_"
    segment_extension: str = ".ts"
    remote_segment_label: str = "highres"

    model_config = {"env_prefix": "INGEST_"}


class StoreSettings(BaseSettings):
    bucket: str = ""
    prefix: str = "ingest-live"
    region: str = "eu-west-1"
    connect_timeout_s: int = 15
    read_timeout_s: int = 45
    max_attempts: int = 3

    model_config = {"env_prefix": "STORE_"}
