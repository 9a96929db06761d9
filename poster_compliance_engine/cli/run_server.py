import argparse
import logging
from typing import List, Optional

import uvicorn

from poster_compliance_engine.validation.config import get_poster_validation_config


def main(argv: Optional[List[str]] = None) -> None:
    server = get_poster_validation_config().server
    parser = argparse.ArgumentParser(description="Serve the poster compliance API")
    parser.add_argument("--host", default=server.host)
    parser.add_argument("--port", type=int, default=server.port)
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(
        "poster_compliance_engine.api.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
