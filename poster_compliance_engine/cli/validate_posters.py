import argparse
import json
import logging
import mimetypes
from pathlib import Path
from typing import List, Optional

from poster_compliance_engine.validation.llm_validator import build_poster_validator


def _mime_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed if guessed and guessed.startswith("image/") else "image/jpeg"


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Validate election poster images against campaign regulations"
    )
    parser.add_argument("images", nargs="+", help="Poster image files")
    parser.add_argument("--output", help="Write the JSON results to this file")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    paths = [Path(image) for image in args.images]
    validator = build_poster_validator()
    results = validator.validate_many(
        (path.read_bytes(), _mime_type(path)) for path in paths
    )
    payload = [
        {"file": str(path), "result": result.to_response()}
        for path, result in zip(paths, results)
    ]
    text = json.dumps(payload, indent=2, ensure_ascii=False)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        rejected = sum(1 for result in results if not result.is_compliant)
        print(f"Validated {len(results)} poster(s), {rejected} non-compliant")
    else:
        print(text)


if __name__ == "__main__":
    main()
