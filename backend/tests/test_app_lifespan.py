from unittest.mock import patch

import pytest
from sqlalchemy import inspect

from newsletter.main import create_app


@pytest.mark.asyncio
async def test_lifespan_creates_tables_and_releases_resources(settings, email_client):
    app = create_app(settings, email_client=email_client)
    pool = app.state.hashing_pool

    with patch.object(pool, "shutdown", wraps=pool.shutdown) as shutdown:
        async with app.router.lifespan_context(app):
            async with app.state.engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            assert {"subscriptions", "subscription_tokens", "users"} <= set(tables)
            assert await pool.run(pow, 3, 3) == 27

    # In-flight hashing jobs are not awaited
    shutdown.assert_called_once_with(wait=False)
    with pytest.raises(RuntimeError):
        await pool.run(pow, 2, 2)
