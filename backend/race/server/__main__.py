"""Run the race server with uvicorn: ``python -m race.server``."""

import uvicorn

from race.server.settings import RaceServerSettings


def main() -> None:  # pragma: no cover
    settings = RaceServerSettings()
    uvicorn.run("race.server.app:get_app", factory=True, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    main()
