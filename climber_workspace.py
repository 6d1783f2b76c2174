from __future__ import annotations

from climber import build, check, cmd, healthy, http, port, project


def workspace():
    return (
        build("~/code/shop")
        .add(
            project("db", description="Postgres + pgadmin", readiness=port(5432)),
            project("cache", path="infra/redis", readiness=healthy("redis")),
            project(
                "api",
                cmd("test", "docker compose run --rm api pytest -q"),
                readiness=http("http://localhost:8000/health"),
            ),
            project("web", readiness=check("curl -fs http://localhost:3000")),
        )
        .depends_on("api", "db", "cache")
        .depends_on("web", "api")
        .group("backend", "db", "cache", "api")
        .environment("dev", "db", "cache", "api", description="Backend only")
        .hook(cmd("install-deps", "make deps", description="Install dependencies"))
        .command(cmd("logs", "docker compose logs --tail 50", target="backend"))
        .readiness(max_retries=20, retry_delay_ms=1500)
        .build()
    )
