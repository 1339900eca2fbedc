"""
Claim processing endpoints.

Handles:
- Client presets for column letters
- Creating a processing run from today's export and an optional prior-day export
- Assignment worksheet download and upload (finalizes the run)
- Daily Action workbook, prebatch workbook, movement analysis and e-mail text
"""

from datetime import date
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Query
from fastapi.responses import StreamingResponse, PlainTextResponse

from claimflow.logics.exceptions import ClaimFlowException, UnreadableFileError
from claimflow.logics.config.client_presets import CLIENT_PRESETS, CLIENT_DISPLAY_NAMES, get_all_clients
from claimflow.logics.column_mapping import letters_for_client, resolve_column_mapping
from claimflow.logics.tabular_reader import read_tabular, read_records, PROCESSED_SHEET_NAME
from claimflow.logics.claim_run import start_run, finalize_run, build_run_report
from claimflow.logics.assignment_overlay import build_assignment_map, build_assignment_worksheet
from claimflow.logics.workbook_builder import (
    build_daily_action_workbook,
    build_prebatch_workbook,
    build_assignment_workbook,
)
from claimflow.logics.email_builder import build_email_text
from claimflow.logics.report_metrics import calculate_today_stats
from claimflow.api.dependencies import get_logger, get_run, save_run
from claimflow.api.utils.responses import success_response, error_response
from claimflow.api.utils.validators import (
    validate_client,
    validate_owner_filter,
    validate_upload_filename,
    parse_column_letters,
)
from claimflow.settings import MAX_UPLOAD_ROWS

router = APIRouter()
logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(output: BytesIO, filename: str) -> StreamingResponse:
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


def _http_error(e: ClaimFlowException) -> HTTPException:
    logger.warning(f"[ClaimsAPI] {e.kind}: {e.message}")
    return HTTPException(status_code=e.http_status, detail=e.to_dict())


def _client_name(client: str) -> str:
    return CLIENT_DISPLAY_NAMES.get(client, client)


async def _read_upload(upload: UploadFile, preferred_sheet: Optional[str]) -> list:
    filename = validate_upload_filename(upload.filename)
    rows = read_tabular(await upload.read(), filename, preferred_sheet=preferred_sheet)
    if len(rows) - 1 > MAX_UPLOAD_ROWS:
        raise HTTPException(
            status_code=413,
            detail=error_response(
                f"File has {len(rows) - 1} data rows; the limit is {MAX_UPLOAD_ROWS}",
                {"filename": filename}
            )
        )
    return rows


@router.get("/")
def health_check():
    """Root endpoint - health check."""
    return success_response(message="Claim-flow API")


@router.get("/api/claims/presets")
def get_presets():
    """Column-letter presets for every supported client."""
    presets = {
        client: {"name": _client_name(client), **CLIENT_PRESETS[client]}
        for client in get_all_clients()
    }
    return success_response(presets)


@router.post("/api/claims/runs")
async def create_run(
    today_file: UploadFile = File(...),
    yesterday_file: Optional[UploadFile] = File(None),
    client: str = Form(...),
    columns: Optional[str] = Form(None)
):
    """
    Classify today's export and start a processing run.

    Request Body (multipart):
        today_file: Today's claims export (.xlsx, .xlsm or .csv)
        yesterday_file: Optional prior-day processed report
        client: Client preset key (solis, liberty, secur, csh)
        columns: Optional JSON object of column-letter overrides, e.g. {"notes": "AB"}

    Responses:
        200: Run summary including the run id
        400: Invalid client, columns or file
        413: Too many rows

    A prior-day file without the required columns does not fail the request;
    the summary carries snapshot_error and the run has no day-over-day comparison.
    """
    client = validate_client(client)
    overrides = parse_column_letters(columns)

    try:
        today_rows = await _read_upload(today_file, preferred_sheet=None)
        yesterday_rows = None
        yesterday_error = None
        if yesterday_file is not None and yesterday_file.filename:
            try:
                yesterday_rows = await _read_upload(yesterday_file, preferred_sheet=PROCESSED_SHEET_NAME)
            except UnreadableFileError as e:
                yesterday_error = e.message

        letters = letters_for_client(client, overrides)
        mapping = resolve_column_mapping(letters, header_width=len(today_rows[0]))
        run = start_run(
            today_rows,
            mapping,
            snapshot_rows=yesterday_rows,
            client=client,
            column_letters=letters,
            snapshot_error=yesterday_error,
        )
        save_run(run)

        data = run.summary()
        data["column_letters"] = letters
        logger.info(f"[ClaimsAPI] Created run {run.run_id} for {client}")
        return success_response(data, "Run created")

    except HTTPException:
        raise
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error creating run: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to process claims file", str(e))
        )


@router.get("/api/claims/runs/{run_id}/assignment-template")
def download_assignment_template(run_id: str):
    """Assignment worksheet (one row per distinct claim state / note text) as Excel."""
    try:
        run = get_run(run_id)
        output = build_assignment_workbook(build_assignment_worksheet(run.claims))
        return _xlsx_response(output, f"{run.client}_assignments_{date.today().isoformat()}.xlsx")
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error building assignment template: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to build assignment template", str(e))
        )


@router.get("/api/claims/runs/{run_id}/prebatch")
def download_prebatch(run_id: str):
    """Prebatch rows of today's export, unmodified, as Excel."""
    try:
        run = get_run(run_id)
        output = build_prebatch_workbook(run.header, run.prebatch_rows)
        return _xlsx_response(output, f"{run.client}_prebatch_{date.today().isoformat()}.xlsx")
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error building prebatch workbook: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to build prebatch workbook", str(e))
        )


@router.post("/api/claims/runs/{run_id}/assignments")
async def submit_assignments(run_id: str, assignment_file: Optional[UploadFile] = File(None)):
    """
    Apply assignment overrides and run the day-over-day analysis.

    Request Body (multipart):
        assignment_file: Optional completed assignment worksheet. Without it every
            claim keeps its default owner.

    Responses:
        200: Run summary, assignment row counts and KPIs (when a prior-day file was given)
        404: Unknown or expired run
    """
    try:
        run = get_run(run_id)

        load_result = build_assignment_map([])
        if assignment_file is not None and assignment_file.filename:
            filename = validate_upload_filename(assignment_file.filename)
            records = read_records(await assignment_file.read(), filename)
            load_result = build_assignment_map(records)

        finalize_run(run, load_result.assignments, load_result.accepted, load_result.rejected)
        save_run(run)

        data = run.summary()
        data["assignments"] = load_result.to_dict()
        if run.kpis is not None:
            data["kpis"] = run.kpis.to_dict()
            data["kpi_tiles"] = run.kpis.tiles()
        return success_response(data, "Assignments applied")

    except HTTPException:
        raise
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error applying assignments for run {run_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to apply assignments", str(e))
        )


@router.get("/api/claims/runs/{run_id}/report")
def download_report(run_id: str, owner: Optional[str] = Query(None)):
    """
    Daily Action workbook.

    Query Parameters:
        owner: Optional 'PV' or 'Claims' for a team-specific report
    """
    owner_filter = validate_owner_filter(owner)
    try:
        run = get_run(run_id, require_finalized=True)
        title = f"{_client_name(run.client)} Daily Action Report"
        if owner_filter:
            title += f" ({owner_filter} Team)"
        output = build_daily_action_workbook(
            run.claims,
            run.output_header,
            title,
            owner_filter=owner_filter,
            scheme=run.scheme,
        )
        suffix = f"_{owner_filter}" if owner_filter else ""
        return _xlsx_response(output, f"{run.client}_daily_action{suffix}_{date.today().isoformat()}.xlsx")
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error building report for run {run_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to build report", str(e))
        )


@router.get("/api/claims/runs/{run_id}/movement")
def get_movement(run_id: str):
    """Stats, KPIs, cycle times, cohort movement and chart series of a finalized run."""
    try:
        run = get_run(run_id, require_finalized=True)
        return success_response(build_run_report(run))
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error building movement report for run {run_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to build movement report", str(e))
        )


@router.get("/api/claims/runs/{run_id}/email", response_class=PlainTextResponse)
def get_email_text(run_id: str):
    """Body text for the daily report e-mail."""
    try:
        run = get_run(run_id)
        return build_email_text(
            _client_name(run.client),
            calculate_today_stats(run.claims, run.scheme),
            run.snapshot.stats if run.snapshot is not None else None,
            run.scheme,
        )
    except ClaimFlowException as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"[ClaimsAPI] Error building e-mail text for run {run_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_response("Failed to build e-mail text", str(e))
        )

