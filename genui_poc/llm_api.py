# --- Purpose -------------------------------------------------------------------
# Content generators: send the conversation to a language model and stream its
# reply back to the UI.
#
# WHAT this module does
# - `get_llm_models(url)`: list the chat models available on an Ollama server.
# - `OllamaContentGenerator`: streams `/api/chat` replies from Ollama.
# - `GeminiContentGenerator`: streams `streamGenerateContent` replies from
#    the Google Generative Language REST API.
#
# HOW it works
# - `requests` does the blocking HTTP work on a daemon `Thread`, so the Kivy
#   main loop never waits on the network.
# - Every text delta, the end of the stream and any failure are handed back
#   with `Clock.schedule_once`, which runs them on the Kivy main thread where
#   widgets may be touched.

import json
from threading import Event, Thread

import requests
from kivy.clock import Clock
from kivy.logger import Logger

from genui_poc.exceptions import GenerationError

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
REQUEST_TIMEOUT = (10, 120)  # (connect, read) seconds


def get_llm_models(url):
    """
    Return the names of the chat models served by the Ollama server at `url`.

    Ollama `/api/tags` returns `{ "models": [ {"name": "..."}, ... ] }`.
    Embedding models are left out since they cannot chat.
    """
    llm_models_url = f"{url}/api/tags"
    got_llm_models = []
    try:
        response = requests.get(llm_models_url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        models_data = response.json()
    except (requests.RequestException, ValueError) as e:
        Logger.error(f"GenUI: cannot list Ollama models at {url}: {e}")
        return got_llm_models
    for model in models_data.get("models", []):
        model_name = model.get("name", "")
        if model_name and "embed" not in model_name:
            got_llm_models.append(model_name)
    return got_llm_models


def _gemini_texts(candidates):
    """Text parts of the first candidate; anything not shaped like one yields nothing."""
    if not isinstance(candidates, list) or not candidates:
        return
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    for part in parts if isinstance(parts, list) else []:
        if isinstance(part, dict) and isinstance(part.get("text"), str):
            yield part["text"]


class ContentGenerator:
    """Runs one streamed request at a time on a background thread.

    Subclasses implement `_stream(messages)`, a generator of text deltas that
    raises `GenerationError` on failure.
    """

    backend = "generic"

    def __init__(self, system_instruction="", clock=None):
        self.system_instruction = system_instruction
        self._clock = clock if clock is not None else Clock
        self._stop_event = Event()
        self._thread = None

    def send(self, messages, on_chunk, on_done, on_error):
        # a newer request supersedes whatever is still streaming
        self._stop_event.set()
        self._stop_event = Event()
        self._thread = Thread(
            target=self._run,
            args=(list(messages), on_chunk, on_done, on_error, self._stop_event),
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def _deliver(self, callback, *args):
        # schedule_once: run on the Kivy main thread on the next frame
        self._clock.schedule_once(lambda dt: callback(*args))

    def _run(self, messages, on_chunk, on_done, on_error, stop_event):
        try:
            for delta in self._stream(messages):
                if stop_event.is_set():
                    return
                if delta:
                    self._deliver(on_chunk, delta)
        except GenerationError as e:
            Logger.error(f"GenUI: {self.backend} generation failed: {e}")
            if not stop_event.is_set():
                self._deliver(on_error, e)
            return
        if not stop_event.is_set():
            self._deliver(on_done)

    def _stream(self, messages):
        raise NotImplementedError

    def _post_lines(self, url, body, headers=None, params=None):
        """POST `body` and yield the response lines as they arrive."""
        try:
            with requests.post(
                url, json=body, headers=headers, params=params,
                stream=True, timeout=REQUEST_TIMEOUT,
            ) as response:
                response.raise_for_status()
                for line in response.iter_lines(decode_unicode=True):
                    if line:
                        yield line
        except requests.RequestException as e:
            raise GenerationError(f"{self.backend} request failed: {e}", self.backend) from e

    def dispose(self):
        """Stop delivering results from a request still in flight."""
        self._stop_event.set()


class OllamaContentGenerator(ContentGenerator):
    backend = "ollama"

    def __init__(self, uri, model, system_instruction="", clock=None):
        super().__init__(system_instruction, clock)
        self.uri = uri.rstrip("/")
        self.model = model

    def build_body(self, messages):
        chat = []
        if self.system_instruction:
            chat.append({"role": "system", "content": self.system_instruction})
        chat.extend(messages)
        return {"model": self.model, "messages": chat, "stream": True}

    def _stream(self, messages):
        if not self.model:
            raise GenerationError("no Ollama model selected", self.backend)
        for line in self._post_lines(f"{self.uri}/api/chat", self.build_body(messages)):
            try:
                payload = json.loads(line)
            except ValueError as e:
                raise GenerationError(f"malformed Ollama stream line: {line[:80]}", self.backend) from e
            if not isinstance(payload, dict):
                raise GenerationError(f"unexpected Ollama stream line: {line[:80]}", self.backend)
            if payload.get("error"):
                raise GenerationError(str(payload["error"]), self.backend)
            message = payload.get("message") or {}
            if not isinstance(message, dict):
                raise GenerationError(f"unexpected Ollama message: {line[:80]}", self.backend)
            content = message.get("content") or ""
            yield content if isinstance(content, str) else str(content)
            if payload.get("done"):
                return


class GeminiContentGenerator(ContentGenerator):
    backend = "gemini"

    def __init__(self, api_key, model, system_instruction="", clock=None):
        super().__init__(system_instruction, clock)
        self.api_key = api_key
        self.model = model if model.startswith("models/") else f"models/{model}"

    def build_body(self, messages):
        contents = [
            {
                "role": "model" if message["role"] == "assistant" else "user",
                "parts": [{"text": message["content"]}],
            }
            for message in messages
        ]
        body = {"contents": contents}
        if self.system_instruction:
            body["systemInstruction"] = {"parts": [{"text": self.system_instruction}]}
        return body

    def _stream(self, messages):
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not set", self.backend)
        url = f"{GEMINI_BASE_URL}/{self.model}:streamGenerateContent"
        lines = self._post_lines(
            url,
            self.build_body(messages),
            headers={"x-goog-api-key": self.api_key},
            params={"alt": "sse"},
        )
        for line in lines:
            # server-sent events: only `data:` lines carry payloads
            if not line.startswith("data:"):
                continue
            try:
                payload = json.loads(line[len("data:"):].strip())
            except ValueError as e:
                raise GenerationError(f"malformed Gemini event: {line[:80]}", self.backend) from e
            if not isinstance(payload, dict):
                raise GenerationError(f"unexpected Gemini event: {line[:80]}", self.backend)
            error = payload.get("error")
            if error:
                message = error.get("message", error) if isinstance(error, dict) else error
                raise GenerationError(str(message), self.backend)
            yield from _gemini_texts(payload.get("candidates"))
