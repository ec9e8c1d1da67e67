"""Answer judges.

A judge takes the round letter, the room's categories and a batch of
unique ``(category, word)`` pairs and returns a verdict per
``"category:word"`` key. ``LLMJudge`` asks an OpenAI-compatible chat
completions endpoint; ``FallbackJudge`` applies the starts-with-letter
rule and never fails. The validation pipeline holds both and switches to
the fallback for the whole batch when the primary raises ``JudgeError``.
"""

import json
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

Pair = Tuple[str, str]

FALLBACK_REASON = 'fallback'

_JSON_OBJECT = re.compile(r'\{[\s\S]*\}')


class JudgeError(Exception):
    """The judge could not produce a complete, well-formed verdict map."""


@dataclass(frozen=True)
class Verdict:
    is_valid: bool
    reason: str


def judge_key(category: str, word: str) -> str:
    return f"{category}:{word}".lower()


class FallbackJudge:
    name = 'fallback'

    def judge(self, letter: str, categories: List[str], pairs: Iterable[Pair]) -> Dict[str, Verdict]:
        prefix = (letter or '').lower()
        verdicts = {}
        for category, word in pairs:
            text = (word or '').strip().lower()
            if not text:
                verdict = Verdict(False, f'{FALLBACK_REASON}: empty')
            elif not text.startswith(prefix):
                verdict = Verdict(False, f'{FALLBACK_REASON}: wrong letter')
            else:
                verdict = Verdict(True, FALLBACK_REASON)
            verdicts[judge_key(category, word)] = verdict
        return verdicts


class LLMJudge:
    name = 'llm'

    def __init__(self, api_url: str, api_key: str, model: str, timeout: float = 15.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.api_url = api_url.rstrip('/') + '/chat/completions'
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def build_prompt(self, letter: str, categories: List[str], pairs: List[Pair]) -> str:
        words = [judge_key(c, w) for c, w in pairs]
        return (
            "You are a strict judge for the word game Categories.\n"
            f"The letter is '{letter}'.\n"
            "Check that each word is a real entry for its category and starts with the letter. "
            "Allow minor typos.\n"
            f"Categories in this game: {', '.join(categories)}.\n"
            "Respond ONLY with a JSON object whose keys are the 'category:word' strings exactly as given "
            "(lowercase) and whose values are {\"isValid\": boolean, \"reason\": string}.\n\n"
            f"Words to validate: {json.dumps(words, ensure_ascii=False)}"
        )

    def judge(self, letter: str, categories: List[str], pairs: Iterable[Pair]) -> Dict[str, Verdict]:
        pairs = list(pairs)
        if not pairs:
            return {}
        body = {
            'model': self.model,
            'temperature': 0,
            'messages': [
                {'role': 'system', 'content': 'You judge answers in a word game and reply with JSON only.'},
                {'role': 'user', 'content': self.build_prompt(letter, categories, pairs)},
            ],
        }
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        try:
            with httpx.Client(timeout=httpx.Timeout(self.timeout), headers=headers,
                              transport=self._transport) as client:
                response = client.post(self.api_url, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise JudgeError(f'timeout: {exc}') from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise JudgeError(f'request failed: {exc}') from exc

        try:
            content = data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as exc:
            raise JudgeError('response has no message content') from exc
        return self.parse_verdicts(content, pairs)

    @staticmethod
    def parse_verdicts(text, pairs: List[Pair]) -> Dict[str, Verdict]:
        """Parse the model's reply; any missing or malformed entry fails the batch."""
        match = _JSON_OBJECT.search(text or '')
        if not match:
            raise JudgeError('no JSON object in reply')
        try:
            raw = json.loads(match.group(0))
        except ValueError as exc:
            raise JudgeError(f'unparsable JSON: {exc}') from exc
        if not isinstance(raw, dict):
            raise JudgeError('reply is not an object')
        normalized = {str(k).strip().lower(): v for k, v in raw.items()}

        verdicts = {}
        for category, word in pairs:
            key = judge_key(category, word)
            entry = normalized.get(key)
            if not isinstance(entry, dict) or not isinstance(entry.get('isValid'), bool):
                raise JudgeError(f'missing or malformed verdict for {key!r}')
            reason = entry.get('reason')
            verdicts[key] = Verdict(entry['isValid'], str(reason) if reason is not None else '')
        return verdicts


def select_judge(config):
    """Primary judge for this configuration."""
    url = config.get('JUDGE_API_URL')
    key = config.get('JUDGE_API_KEY')
    if url and key:
        return LLMJudge(url, key, config.get('JUDGE_MODEL', 'gpt-4o-mini'),
                        timeout=float(config.get('JUDGE_TIMEOUT_SEC', 15)))
    return FallbackJudge()
