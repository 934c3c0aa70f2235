"""
Paraformer — Non-autoregressive ASR via ONNX Runtime.

Loads an exported Paraformer model (model.onnx + config.yaml + am.mvn),
extracts fbank/LFR/CMVN features, runs batched inference and decodes the
acoustic scores by greedy argmax. The predictor's CIF peaks are returned
alongside the tokens for timestamp alignment.
"""

import logging
from pathlib import Path
from typing import List, Sequence

import numpy as np
import yaml

from .frontend import FrontendOptions, WavFrontend, load_cmvn
from .recognizer import RecognitionOutput, Recognizer

logger = logging.getLogger(__name__)

BLANK_ID = 0
EOS_ID = 2


class ParaformerRecognizer(Recognizer):
    """
    Paraformer speech recognizer.

    The ONNX session is created lazily on first use and released by close().
    Expected session inputs: ``speech`` (B, T, D) float32 and
    ``speech_lengths`` (B,) int32. Outputs: am_scores, valid_token_lens,
    us_alphas, us_cif_peak.
    """

    def __init__(self, config):
        model_dir = Path(getattr(config, "model_dir", "models/paraformer"))
        self.model_path = model_dir / getattr(config, "model_file", "model_quant.onnx")
        self.config_path = model_dir / getattr(config, "config_file", "config.yaml")
        self.mvn_path = model_dir / getattr(config, "mvn_file", "am.mvn")
        self.batch_size = max(1, getattr(config, "batch_size", 2))
        self.threads = getattr(config, "threads", 2)

        model_conf = self._read_model_config(self.config_path)
        self.token_list: List[str] = list(model_conf.get("token_list") or [])
        if not self.token_list:
            raise ValueError(f"No token_list in model config: {self.config_path}")
        self.predictor_bias = int((model_conf.get("model_conf") or {}).get("predictor_bias", 0))

        frontend_options = FrontendOptions.from_dict(model_conf.get("frontend_conf"))
        self.sample_rate = frontend_options.fs
        self.frontend = WavFrontend(frontend_options, load_cmvn(self.mvn_path))

        # Lazy-loaded
        self._session = None

    @staticmethod
    def _read_model_config(path: Path) -> dict:
        if not path.exists():
            raise FileNotFoundError(f"Paraformer config not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _load_model(self):
        """Create the ONNX Runtime session on first use."""
        if self._session is not None:
            return

        import onnxruntime as ort

        if not self.model_path.exists():
            raise FileNotFoundError(f"Paraformer model not found: {self.model_path}")

        logger.info(f"Loading Paraformer model '{self.model_path.name}' (threads={self.threads})")
        options = ort.SessionOptions()
        options.intra_op_num_threads = self.threads
        self._session = ort.InferenceSession(
            str(self.model_path),
            sess_options=options,
            providers=["CPUExecutionProvider"],
        )
        logger.info("Paraformer model loaded successfully.")

    def recognize(self, batch: Sequence[np.ndarray]) -> RecognitionOutput:
        self._load_model()

        feats, feat_lengths = self.frontend.extract_features(batch)
        output = RecognitionOutput()
        if feats.shape[1] == 0:
            logger.debug("Batch too short for a single feature frame, skipping")
            return output

        am_scores, valid_token_lens, _, us_peaks = self._session.run(
            None, {"speech": feats, "speech_lengths": feat_lengths}
        )[:4]

        for i in range(am_scores.shape[0]):
            valid = int(valid_token_lens[i])
            if feat_lengths[i] == 0:
                output.tokens.append([])
            else:
                output.tokens.append(self.decode(am_scores[i], valid))
            output.peaks.append(np.asarray(us_peaks[i], dtype=np.float32))
            output.valid_token_counts.append(valid)

        return output

    def decode(self, am_score: np.ndarray, valid_token_num: int) -> List[str]:
        """Greedy decode one segment's scores (tokens, vocab) into tokens."""
        token_ids = np.argmax(am_score, axis=-1)
        token_ids = [int(t) for t in token_ids if t != BLANK_ID and t != EOS_ID]
        tokens = [self.token_list[t] for t in token_ids if t < len(self.token_list)]
        keep = max(0, valid_token_num - self.predictor_bias)
        return tokens[:keep]

    def close(self):
        if self._session is not None:
            logger.debug("Releasing Paraformer session")
            self._session = None
