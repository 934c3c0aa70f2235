"""
Offline Subtitle Generator — Paraformer Subtitle Package

Speech-window detection and recognition pipeline for offline subtitles:
  - spans: TimeWindow / TextSpan / AccurateTextSpan value types
  - window_queue: time-biased blocking queue between VAD and ASR
  - alignment: CIF peak → token timestamps and sentence segmentation
  - frontend: fbank + LFR + CMVN feature extraction
  - recognizer / paraformer: batched Paraformer ONNX inference
  - vad: Silero VAD speech-window detector
  - audio_extractor: media decoding to a mono float32 waveform
  - collection: observable, append-only subtitle collection
  - generator: pipeline state machine coordinating the workers
  - srt_writer: SubRip file output and parsing
  - cpu_throttle: CPU usage monitoring and throttling
"""
