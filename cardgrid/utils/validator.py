# validator.py

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from jsonschema import validate
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"


class SchemaValidator:
    # map configuration sections → schema filenames
    SECTION_MAP = {
        "extractionSettings": "extraction_settings.json",
        "outputSettings": "output_settings.json",
    }

    def __init__(self, schema_dir: Path = SCHEMA_DIR):
        self.schema_dir = Path(schema_dir)
        self.schema_store = self._load_schemas()

    def _load_schemas(self):
        """Load every .json and key the store by both filename and $id (if present)."""
        store = {}

        for schema_file in self.schema_dir.glob("*.json"):
            text = schema_file.read_text(encoding="utf-8")
            try:
                schema = json.loads(text)
            except json.JSONDecodeError as e:
                logger.error("JSON error in %s: %s", schema_file.name, e)
                raise
            # always register under the filename
            store[schema_file.name] = schema
            # also register under its $id if it has one
            sid = schema.get("$id")
            if sid:
                store[sid] = schema
        return store

    def _detect(self, data: Dict[str, Any]) -> str:
        keys = set(data)
        if "grid" in keys:
            return self.SECTION_MAP["extractionSettings"]
        if keys & {"pageSize", "cardSize", "cardImageSizingMode"}:
            return self.SECTION_MAP["outputSettings"]
        raise ValueError("Cannot auto-detect schema: unknown settings shape")

    def validate(self,
                 data: dict,
                 schema_name: Optional[str] = None,
                 ) -> Tuple[bool, Optional[str]]:
        """
        Validate `data` against a schema.
        - If schema_name is provided, we use that directly.
        - Else we pick by shape: a "grid" means extraction settings,
          page/card size means output settings.
        Returns (True, None) on success, or (False, "Error message") on failure.
        """
        key = schema_name or self._detect(data)
        schema = self.schema_store.get(key)
        if not schema:
            raise FileNotFoundError(f"Schema '{key}' not found in {self.schema_dir!r}")

        try:
            validate(instance=data, schema=schema)
            return True, None
        except ValidationError as e:
            # build a human-friendly path like "crop->left"
            path = "->".join(map(str, e.path)) or "(root)"
            return False, f"Validation Error in {path}: {e.message}"

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """Validate every known section of a plain configuration object."""
        if not isinstance(config, dict):
            return False, "Validation Error in (root): configuration must be an object"
        for section, schema_name in self.SECTION_MAP.items():
            if section not in config:
                continue
            ok, message = self.validate(config[section], schema_name)
            if not ok:
                return False, f"{section}: {message}"
        return True, None
