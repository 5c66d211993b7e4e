"""Rule-based endpoint detection for streaming decoders."""

from typing import Optional

from ..config import EndpointConfig


def evaluate_endpoint(
    config: EndpointConfig,
    trailing_silence: float,
    utterance_length: float,
    contains_speech: bool,
) -> Optional[int]:
    """
    Evaluate the endpoint rules in order.

    Args:
        config: Rule thresholds
        trailing_silence: Seconds of non-speech at the end of the utterance
        utterance_length: Seconds of audio since the utterance started
        contains_speech: Whether any speech has been decoded yet

    Returns:
        Number of the first rule that fired (1, 2 or 3), or None
    """
    if not contains_speech and trailing_silence >= config.rule1_min_trailing_silence:
        return 1
    if contains_speech and trailing_silence >= config.rule2_min_trailing_silence:
        return 2
    if utterance_length >= config.rule3_min_utterance_length:
        return 3
    return None
