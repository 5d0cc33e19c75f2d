"""Audio/Text-to-speech module for Wayfinder."""

import subprocess
import threading
from typing import Optional, Callable


class Audio:
    """Fire-and-forget text-to-speech for instructions"""

    def __init__(self, rate: int = 150, enabled: bool = True,
                 callback: Optional[Callable[[str], None]] = None):
        self.rate = rate
        self.enabled = enabled
        self.callback = callback  # e.g. the event relay, to mirror prompts

    def speak(self, text: str):
        """Speak text using espeak (available in Termux) without waiting for it"""
        if self.callback:
            try:
                self.callback(text)
            except Exception as e:
                print(f"Audio callback error: {e}")

        if not self.enabled:
            print(f"[AUDIO] {text}")
            return

        try:
            subprocess.Popen(
                ["espeak", "-s", str(self.rate), text],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            # Fallback: pyttsx3 blocks until done, so keep it off the caller's thread
            threading.Thread(target=self._speak_pyttsx3, args=(text,), daemon=True).start()
        except Exception as e:
            print(f"Audio error: {e}")
            print(f"[AUDIO] {text}")

    def _speak_pyttsx3(self, text: str):
        try:
            import pyttsx3
            engine = pyttsx3.init()
            engine.setProperty("rate", self.rate)
            engine.say(text)
            engine.runAndWait()
        except Exception:
            print(f"[AUDIO] {text}")
