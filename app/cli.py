"""
命令行接口 - 启动服务、初始化数据库、本地摄取与搜索
"""

import asyncio
import json
import mimetypes
import subprocess
import sys
import click
import uvicorn
from pathlib import Path
from typing import Optional

from app.config import settings
from app.core.exceptions import TherapyNotesException
from app.core.logging import setup_logging, api_logger


@click.group()
@click.version_option(version=settings.app_version)
def main():
    """Therapy Notes - 治疗会话录音转录与检索"""
    pass


@main.command()
@click.option('--host', default=None, help='服务器地址')
@click.option('--port', default=None, type=int, help='服务器端口')
@click.option('--reload', is_flag=True, help='开启自动重载')
@click.option('--workers', default=1, type=int, help='工作进程数')
@click.option('--log-level', default='info',
              type=click.Choice(['debug', 'info', 'warning', 'error', 'critical']),
              help='日志级别')
def server(host: Optional[str], port: Optional[int], reload: bool,
           workers: int, log_level: str):
    """启动API服务器"""
    host = host or settings.host
    port = port or settings.port

    setup_logging(level=log_level.upper())
    api_logger.info(f"启动服务器: {host}:{port}")

    if reload and workers > 1:
        api_logger.warning("重载模式不支持多进程，将使用单进程")
        workers = 1

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level,
        timeout_keep_alive=int(settings.upload_timeout),
        access_log=True
    )


@main.command('init-db')
@click.option('--drop', is_flag=True, help='先删除已有表')
def init_db(drop: bool):
    """启用pgvector扩展并创建数据表"""
    from app.db.database import engine
    from app.db.init_db import drop_tables, init_database

    setup_logging()

    async def run():
        if drop:
            await drop_tables(engine)
        await init_database(engine)
        await engine.dispose()

    asyncio.run(run())
    click.echo("数据库初始化完成")


@main.command()
@click.option('--upgrade', is_flag=True, help='升级数据库到最新版本')
@click.option('--revision', default=None, help='迁移到指定版本')
@click.option('--sql', is_flag=True, help='只显示SQL而不执行')
@click.option('--create', is_flag=True, help='创建新的迁移')
@click.option('--message', default=None, help='迁移消息')
def db(upgrade: bool, revision: Optional[str], sql: bool, create: bool, message: Optional[str]):
    """数据库迁移命令"""
    if create:
        if not message:
            message = click.prompt('迁移消息')
        cmd = ['alembic', 'revision', '--autogenerate', '-m', message]
        api_logger.info(f"创建新迁移: {message}")
    elif upgrade:
        cmd = ['alembic', 'upgrade', revision or 'head']
        if sql:
            cmd.append('--sql')
        api_logger.info(f"升级数据库到: {revision or 'head'}")
    else:
        cmd = ['alembic', 'current']
        api_logger.info("显示当前数据库版本")

    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.stdout:
        click.echo(result.stdout)
    if result.stderr:
        click.echo(result.stderr, err=True)

    if result.returncode != 0:
        sys.exit(result.returncode)


async def _with_services(handler):
    """在独立的数据库会话和AI服务中执行命令"""
    from app.db.database import AsyncSessionLocal, engine
    from app.services.ai import initialize_ai_services, shutdown_ai_services
    from app.services.session import SessionService

    ai_service = await initialize_ai_services(settings.ai_config)
    try:
        async with AsyncSessionLocal() as db_session:
            return await handler(ai_service, SessionService(db_session))
    finally:
        await shutdown_ai_services()
        await engine.dispose()


@main.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--content-type', default=None, help='MIME类型，默认按扩展名推断')
def ingest(file: Path, content_type: Optional[str]):
    """对本地录音执行完整的摄取流水线"""
    from app.core.storage import get_storage_manager
    from app.services.pipeline import IngestionPipeline, RecordingUpload

    setup_logging()
    recording = RecordingUpload(
        content=file.read_bytes(),
        filename=file.name,
        content_type=content_type or mimetypes.guess_type(file.name)[0]
    )

    async def handler(ai_service, sessions):
        pipeline = IngestionPipeline(ai_service, get_storage_manager(), sessions)
        return await pipeline.run(recording)

    try:
        result = asyncio.run(_with_services(handler))
    except TherapyNotesException as e:
        stage = getattr(e, "stage", None)
        raise click.ClickException(f"[{stage}] {e.message}" if stage else e.message)

    click.echo(f"会话ID: {result.session.id}")
    click.echo(f"录音地址: {result.stored.public_url}")
    click.echo(f"时长: {result.duration}s")
    click.echo(f"情绪: {result.summary.sentiment.value}")
    click.echo(f"话题: {', '.join(result.summary.key_topics)}")
    click.echo("")
    click.echo(result.labelled_transcription)


@main.command()
@click.argument('query')
@click.option('--limit', default=None, type=click.IntRange(1, 100), help='返回条数')
@click.option('--as-json', is_flag=True, help='以JSON输出')
def search(query: str, limit: Optional[int], as_json: bool):
    """按语义搜索会话"""
    from app.services.pipeline import SessionSearchService

    setup_logging()
    if not query.strip():
        raise click.BadParameter("搜索内容不能为空", param_hint="QUERY")

    async def handler(ai_service, sessions):
        return await SessionSearchService(ai_service, sessions).search(query.strip(), limit=limit)

    try:
        results = asyncio.run(_with_services(handler))
    except TherapyNotesException as e:
        raise click.ClickException(e.message)

    if as_json:
        click.echo(json.dumps(results, default=str, ensure_ascii=False, indent=2))
        return

    if not results:
        click.echo("没有匹配的会话")
        return

    for item in results:
        click.echo(f"{item['similarity']:.4f}  {item['id']}  {item['created_at']}")
        click.echo(f"    {item['ai_summary']}")


if __name__ == '__main__':
    main()
