"""Export CLI commands: run an export in the foreground and inspect job records."""

import asyncio

import typer

export_app = typer.Typer()


@export_app.command("run")
def export_run(
    where_clause: str | None = typer.Option(None, "--where", help="Filter appended after WHERE"),
    filename: str | None = typer.Option(None, "--filename", help="Output file name"),
) -> None:
    """Run one export job to completion."""
    ok = asyncio.run(_export_run(where_clause, filename))
    if not ok:
        raise typer.Exit(code=1)


async def _export_run(where_clause: str | None, filename: str | None) -> bool:
    """Async implementation of export run."""
    from batch_export.core.config import get_settings
    from batch_export.core.database import dispose_engine, get_engine, get_session_factory, init_engine
    from batch_export.lib.export_engine import ConfigurationError
    from batch_export.services.job_tracker import JobExecutionTracker

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        tracker = JobExecutionTracker(get_session_factory(), get_engine(), settings)
        try:
            job = await tracker.launch(where_clause, filename)
        except ConfigurationError as exc:
            typer.echo(f"Export not started: {exc}", err=True)
            return False

        typer.echo(f"Job execution created: {job.id}")
        typer.echo("Processing...")
        job = await tracker.wait(job.id)
        if job is None:
            typer.echo("Job record disappeared", err=True)
            return False

        typer.echo(f"\nExport {job.status.lower()}:")
        typer.echo(f"  Rows read:     {job.read_count}")
        typer.echo(f"  Rows written:  {job.write_count}")
        typer.echo(f"  Chunks:        {job.commit_count}")
        typer.echo(f"  File path:     {job.output_path or 'N/A'}")
        if job.exit_description:
            typer.echo(f"  Exit:          {job.exit_code} ({job.exit_description})")
        return job.status == "COMPLETED"
    finally:
        await dispose_engine()


@export_app.command("status")
def export_status(
    job_id: int = typer.Argument(..., help="Job execution ID"),
) -> None:
    """Show the status of one job execution."""
    found = asyncio.run(_export_status(job_id))
    if not found:
        raise typer.Exit(code=1)


async def _export_status(job_id: int) -> bool:
    """Async implementation of export status."""
    from batch_export.core.config import get_settings
    from batch_export.core.database import dispose_engine, get_session_factory, init_engine
    from batch_export.services.job_service import get_job_execution

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        factory = get_session_factory()
        async with factory() as session:
            job = await get_job_execution(session, job_id)
        if job is None:
            typer.echo(f"Job execution {job_id} not found", err=True)
            return False

        typer.echo(f"Job {job.id}: {job.status}")
        typer.echo(f"  Started:   {job.start_time or 'N/A'}")
        typer.echo(f"  Ended:     {job.end_time or 'N/A'}")
        typer.echo(f"  Exit code: {job.exit_code}")
        if job.exit_description:
            typer.echo(f"  Detail:    {job.exit_description}")
        typer.echo(f"  Rows:      {job.write_count} written in {job.commit_count} chunks")
        return True
    finally:
        await dispose_engine()
