"""
Provider Response Parsing for GenBench

Generated text is untrusted: it may wrap JSON in markdown fences, prefix it
with prose, or not be JSON at all. Every public function here returns ``None``
when the text cannot be interpreted so callers can pick their fallback.
"""

import json
import re
import logging
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


JsonValue = Union[Dict[str, Any], List[Any]]

# Keys a provider may use for a file's path / content inside a list of file objects
_PATH_KEYS = ('path', 'filename', 'file', 'name', 'file_path')
_CONTENT_KEYS = ('content', 'code', 'source', 'text', 'body')


class LLMResponseParser:
    """Parser for provider responses with layered fallback strategies"""

    def __init__(self):
        self.fence_patterns = [
            # ```json blocks
            re.compile(r'```json\s*\n?(.*?)\n?\s*```', re.DOTALL | re.IGNORECASE),
            # Generic ``` blocks
            re.compile(r'```[\w-]*\s*\n?(.*?)\n?\s*```', re.DOTALL),
        ]

    def strip_code_fences(self, text: str) -> str:
        """Return the body of the first fenced block, or the text itself"""
        if not text:
            return ""
        for pattern in self.fence_patterns:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return match.group(1).strip()
        # Unterminated fence (common with truncated responses)
        stripped = text.strip()
        if stripped.startswith("```"):
            stripped = re.sub(r'^```[\w-]*\s*\n?', '', stripped)
        return stripped

    def extract_json_object(self, text: str, openers: str = "{[") -> Optional[str]:
        """Extract the first complete JSON object (or array) from text"""
        start = None
        for i, char in enumerate(text):
            if char in openers:
                start = i
                break
        if start is None:
            return None

        opener = text[start]
        closer = '}' if opener == '{' else ']'
        depth = 0
        in_string = False
        escape_next = False

        for i in range(start, len(text)):
            char = text[i]
            if escape_next:
                escape_next = False
                continue

            if char == '\\':
                escape_next = True
                continue

            if char == '"':
                in_string = not in_string
                continue

            if not in_string:
                if char == opener:
                    depth += 1
                elif char == closer:
                    depth -= 1
                    if depth == 0:
                        return text[start:i + 1]

        return None

    def clean_json_string(self, json_str: str) -> str:
        """Fix common JSON formatting issues"""
        json_str = json_str.strip()
        # Trailing commas before closing brackets/braces
        json_str = re.sub(r',(\s*[}\]])', r'\1', json_str)
        return json_str

    def parse_json(self, text: Optional[str]) -> Optional[JsonValue]:
        """Parse a JSON object or array out of a provider response"""
        if not text or not text.strip():
            return None

        candidates = [self.strip_code_fences(text), text]
        for candidate in candidates:
            for attempt in (candidate, self.extract_json_object(candidate, "{"),
                            self.extract_json_object(candidate, "[")):
                if not attempt:
                    continue
                for cleaner in (lambda s: s, self.clean_json_string):
                    try:
                        data = json.loads(cleaner(attempt))
                    except (json.JSONDecodeError, TypeError):
                        continue
                    if isinstance(data, (dict, list)):
                        return data

        logger.warning("⚠️ Could not parse JSON from provider response (%d chars)", len(text))
        return None

    def extract_files(self, data: Any) -> Optional[Dict[str, str]]:
        """Extract a path -> content mapping from parsed response data"""
        if isinstance(data, list):
            files = self._convert_file_list_to_dict(data)
            return files or None

        if not isinstance(data, dict):
            return None

        if 'files' in data:
            files_data = data['files']
            if isinstance(files_data, list):
                return self._convert_file_list_to_dict(files_data) or None
            if isinstance(files_data, dict):
                return self._normalize_mapping(files_data) or None
            return None

        # Flat mapping of filename -> content
        if data and all(isinstance(k, str) and ('.' in k or '/' in k) for k in data.keys()):
            return self._normalize_mapping(data) or None

        return None

    def _normalize_mapping(self, files: Dict[str, Any]) -> Dict[str, str]:
        normalized = {}
        for path, content in files.items():
            if not isinstance(path, str) or not path.strip():
                continue
            if isinstance(content, str):
                normalized[path.strip()] = content
            elif isinstance(content, (dict, list)):
                # e.g. package.json returned as an object
                normalized[path.strip()] = json.dumps(content, indent=2) + "\n"
            elif content is not None:
                normalized[path.strip()] = str(content)
        return normalized

    def _convert_file_list_to_dict(self, file_list: List[Any]) -> Dict[str, str]:
        """Convert list of file objects to filename -> content dictionary"""
        files_dict = {}

        for item in file_list:
            if not isinstance(item, dict):
                continue
            filename = next((item[k] for k in _PATH_KEYS if isinstance(item.get(k), str)), None)
            content = next((item[k] for k in _CONTENT_KEYS if k in item), None)
            if not filename or content is None:
                continue
            files_dict.update(self._normalize_mapping({filename: content}))

        return files_dict


_parser = LLMResponseParser()


def strip_code_fences(text: str) -> str:
    return _parser.strip_code_fences(text)


def parse_json_response(text: Optional[str]) -> Optional[JsonValue]:
    """Parse JSON out of a provider response - returns None if parsing fails"""
    return _parser.parse_json(text)


def parse_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    data = _parser.parse_json(text)
    return data if isinstance(data, dict) else None


def parse_files_response(text: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse a generate-stage response into files - returns None if parsing fails"""
    data = _parser.parse_json(text)
    if data is None:
        return None
    files = _parser.extract_files(data)
    if not files:
        logger.warning("⚠️ Provider response parsed as JSON but contained no files")
    return files
