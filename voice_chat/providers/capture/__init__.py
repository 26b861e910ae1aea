from .whisper_capture import WhisperSpeechCapture

__all__ = ['WhisperSpeechCapture']
