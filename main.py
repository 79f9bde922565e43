#!/usr/bin/env python3
"""
Purchase order workflow: CLI entry point.

Usage examples:
  python main.py check                                   # Verify setup (DB, suppliers, inventory)
  python main.py list --status "Pending Approval"        # List active POs
  python main.py show PO-001                             # One PO with its audit trail

  python main.py --role Admin --user alice create SUP-001 \\
      --item INV-001:10 --item INV-002:5:12.50 --delivery 2030-06-01
  python main.py --role Admin submit PO-001
  python main.py --role Admin approve PO-001
  python main.py --role Admin order PO-001
  python main.py --role Admin receive PO-001 --qty INV-001=10 --qty INV-002=2

  python main.py --role Admin batch archive PO-003 PO-004 PO-007
  python main.py --role Owner purge PO-003
"""
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click

from config import Config
from models.purchase_order import ALL_STATUSES, SHIPPING_STATUSES, PurchaseOrder
from procurement import Actor, ProcurementError, PurchasingService
from procurement.permissions import ROLES
from procurement.service import BATCH_OPERATIONS


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--user", "-u", default="cli", envvar="PO_USER", help="User id recorded in the audit log")
@click.option(
    "--role", "-r", default="Viewer", envvar="PO_ROLE",
    type=click.Choice(ROLES), help="Role to act as (default: Viewer)",
)
@click.option("--db", default=None, type=click.Path(), help="Path to the SQLite database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, user: str, role: str, db: Optional[str]) -> None:
    """Purchase orders: approval, receiving and batch operations."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["actor"] = Actor(user_id=user, role=role)
    ctx.obj["db"] = db
    _setup_logging(verbose)


# --------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------

def _service(ctx: click.Context) -> PurchasingService:
    if "service" not in ctx.obj:
        config = Config()
        if ctx.obj.get("db"):
            config.db_path = Path(ctx.obj["db"])
        ctx.obj["service"] = PurchasingService(config)
    return ctx.obj["service"]


def _run(ctx: click.Context, fn: Callable[[PurchasingService, Actor], object]):
    """Call *fn* and turn domain errors into a one-line message and exit code 1."""
    try:
        return fn(_service(ctx), ctx.obj["actor"])
    except ProcurementError as exc:
        click.echo(f"✗ {exc.message}", err=True)
        field = exc.detail.get("field")
        if field:
            click.echo(f"  → field: {field}", err=True)
        sys.exit(1)


def _echo_po(po: PurchaseOrder) -> None:
    archived = "  [archived]" if po.archived else ""
    click.echo(f"\n  {po.id}  {po.status}{archived}  (revision {po.revision})")
    click.echo(f"  Supplier:    {po.supplier_name} ({po.supplier_id})")
    click.echo(f"  PO date:     {po.po_date}")
    click.echo(f"  Delivery:    {po.expected_delivery_date or '(none)'}  shipping: {po.shipping_status}")
    if po.bill_number:
        click.echo(f"  Bill no.:    {po.bill_number}")
    click.echo(f"  Total:       {po.total_amount:.2f}   paid {po.total_paid:.2f}   balance {po.po_balance:.2f}")
    if po.approved_by:
        click.echo(f"  Decided by:  {po.approved_by} on {po.approved_date}")
    if po.received_date:
        click.echo(f"  Received:    {po.received_date}")
    click.echo()
    for item in po.items:
        tick = "✓" if item.fully_received else " "
        click.echo(
            f"   {tick} {item.inventory_item_id:<10} {item.item_name:<30} "
            f"{item.quantity_received:>5}/{item.quantity:<5} @ {item.unit_price:>9.2f} = {item.total_price:>10.2f}"
        )
    if po.notes:
        click.echo(f"\n  Notes: {po.notes}")
    click.echo()


def _parse_item(spec: str) -> dict:
    """ITEM_ID:QTY[:UNIT_PRICE]"""
    parts = spec.split(":")
    if len(parts) not in (2, 3) or not parts[0].strip():
        raise click.BadParameter(f"expected ITEM_ID:QTY[:UNIT_PRICE], got {spec!r}")
    try:
        line = {"inventory_item_id": parts[0].strip(), "quantity": float(parts[1])}
        if len(parts) == 3:
            line["unit_price"] = float(parts[2])
    except ValueError:
        raise click.BadParameter(f"quantity and price must be numbers in {spec!r}") from None
    return line


def _parse_qty(spec: str) -> tuple[str, float]:
    """ITEM_ID=QTY"""
    item_id, sep, qty = spec.partition("=")
    if not sep or not item_id.strip():
        raise click.BadParameter(f"expected ITEM_ID=QTY, got {spec!r}")
    try:
        return item_id.strip(), float(qty)
    except ValueError:
        raise click.BadParameter(f"quantity must be a number in {spec!r}") from None


# --------------------------------------------------------------------
# check / list / show / stats
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the database and seed data are ready."""
    status = _service(ctx).check_setup()

    click.echo("\n=== Purchasing Setup Check ===\n")
    click.echo(f"  Database:           {status['db_path']}")
    click.echo(f"  Purchase orders:    {status['purchase_orders']} ({status['archived']} archived)")
    tick = "✓" if status["suppliers"] else "✗"
    click.echo(f"  Suppliers:          {tick} {status['suppliers']} loaded, {status['active_suppliers']} active")
    tick = "✓" if status["inventory_items"] else "✗"
    click.echo(f"  Inventory items:    {tick} {status['inventory_items']}")
    click.echo(f"  Batch workers:      {status['batch_max_workers']}")
    click.echo(f"  Require revision:   {'yes' if status['require_revision'] else 'no'}")
    click.echo()


@cli.command(name="list")
@click.option("--status", "-s", default=None, type=click.Choice(ALL_STATUSES), help="Filter by status")
@click.option("--archived", is_flag=True, help="Show the archive instead of active POs")
@click.option("--search", default=None, help="Match id, supplier name, or bill number")
@click.option("--limit", default=50, show_default=True, type=int)
@click.pass_context
def list_pos(ctx: click.Context, status: Optional[str], archived: bool, search: Optional[str], limit: int) -> None:
    """List purchase orders."""
    pos = _run(ctx, lambda svc, actor: svc.list_orders(
        actor, status=status, archived=archived, search=search, limit=limit
    ))
    if not pos:
        click.echo("No purchase orders found.")
        return
    for po in pos:
        click.echo(
            f"  {po.id:<10} {po.status:<20} {po.supplier_name:<30} "
            f"{po.total_amount:>12.2f}  {po.expected_delivery_date or ''}"
        )
    click.echo(f"\n{len(pos)} purchase order(s).")


@cli.command()
@click.argument("po_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw record as JSON")
@click.pass_context
def show(ctx: click.Context, po_id: str, as_json: bool) -> None:
    """Show one purchase order and its audit trail."""
    po = _run(ctx, lambda svc, actor: svc.get(actor, po_id))
    if as_json:
        click.echo(po.model_dump_json(indent=2))
        return
    _echo_po(po)
    entries = _run(ctx, lambda svc, actor: svc.audit_log(actor, po_id))
    if entries:
        click.echo("  History:")
        for e in entries:
            click.echo(f"    {e.timestamp[:19]}  {e.action:<20} {e.actor}")
        click.echo()


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Counts by status plus total and pending value."""
    data = _run(ctx, lambda svc, actor: svc.stats(actor))
    click.echo(json.dumps(data, indent=2))


# --------------------------------------------------------------------
# create
# --------------------------------------------------------------------

@cli.command()
@click.argument("supplier")
@click.option("--by-name", is_flag=True, help="Treat SUPPLIER as a name or alias instead of an id")
@click.option("--item", "-i", "items", multiple=True, required=True,
              help="Line item as ITEM_ID:QTY[:UNIT_PRICE]; repeatable")
@click.option("--delivery", "-d", required=True, help="Expected delivery date (YYYY-MM-DD)")
@click.option("--notes", default="", help="Free-text notes")
@click.option("--bill-number", default="", help="Supplier bill / reference number")
@click.option("--po-date", default=None, help="PO date (default: today)")
@click.option("--id", "po_id", default=None, help="Explicit PO id (default: next in sequence)")
@click.pass_context
def create(
    ctx: click.Context,
    supplier: str,
    by_name: bool,
    items: tuple[str, ...],
    delivery: str,
    notes: str,
    bill_number: str,
    po_date: Optional[str],
    po_id: Optional[str],
) -> None:
    """Create a Draft purchase order for SUPPLIER (an id, or a name with --by-name)."""
    lines = [_parse_item(s) for s in items]
    supplier_id = supplier
    if by_name:
        found = _run(ctx, lambda svc, actor: svc.find_supplier(actor, supplier))
        click.echo(f"  Supplier: {found.name} ({found.id})")
        supplier_id = found.id
    po = _run(ctx, lambda svc, actor: svc.create(
        actor, supplier_id, lines, delivery,
        notes=notes, bill_number=bill_number, po_date=po_date, po_id=po_id,
    ))
    click.echo(f"✓ Created {po.id} ({len(po.items)} items, total {po.total_amount:.2f})")


# --------------------------------------------------------------------
# Single-record transitions
# --------------------------------------------------------------------

def _transition_command(name: str, method: str, verb: str, doc: str) -> None:
    @cli.command(name=name, help=doc)
    @click.argument("po_id")
    @click.option("--revision", type=int, default=None, help="Expected revision (optimistic lock)")
    @click.pass_context
    def command(ctx: click.Context, po_id: str, revision: Optional[int]) -> None:
        po = _run(ctx, lambda svc, actor: getattr(svc, method)(actor, po_id, revision))
        click.echo(f"✓ {verb} {po.id} → {po.status}{'  [archived]' if po.archived else ''}")


_transition_command("submit",  "submit_for_approval", "Submitted", "Submit a Draft PO for approval.")
_transition_command("approve", "approve",             "Approved",  "Approve a PO pending approval.")
_transition_command("reject",  "reject",              "Rejected",  "Reject a PO pending approval.")
_transition_command("order",   "mark_as_ordered",     "Ordered",   "Mark an Approved PO as ordered.")
_transition_command("cancel",  "cancel",              "Cancelled", "Cancel a PO that is not Received.")
_transition_command("archive", "archive",             "Archived",  "Archive a Draft / Cancelled / Rejected PO.")
_transition_command("restore", "restore",             "Restored",  "Restore an archived PO.")


@cli.command()
@click.argument("po_id")
@click.option("--revision", type=int, default=None, help="Expected revision (optimistic lock)")
@click.pass_context
def delete(ctx: click.Context, po_id: str, revision: Optional[int]) -> None:
    """Hard-delete a Draft / Cancelled / Rejected PO."""
    po = _run(ctx, lambda svc, actor: svc.delete(actor, po_id, revision))
    click.echo(f"✓ Deleted {po.id}")


@cli.command()
@click.argument("po_id")
@click.option("--revision", type=int, default=None, help="Expected revision (optimistic lock)")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def purge(ctx: click.Context, po_id: str, revision: Optional[int], yes: bool) -> None:
    """Permanently delete an archived PO (Owner only)."""
    if not yes:
        click.confirm(f"Permanently delete {po_id}? This cannot be undone", abort=True)
    po = _run(ctx, lambda svc, actor: svc.permanently_delete(actor, po_id, revision))
    click.echo(f"✓ Permanently deleted {po.id}")


# --------------------------------------------------------------------
# receive
# --------------------------------------------------------------------

@cli.command()
@click.argument("po_id")
@click.option("--qty", "-q", "quantities", multiple=True, required=True,
              help="Received quantity as ITEM_ID=QTY; repeatable")
@click.option("--actual-cost", type=float, default=None, help="Actual cost; replaces the PO total")
@click.option("--revision", type=int, default=None, help="Expected revision (optimistic lock)")
@click.pass_context
def receive(
    ctx: click.Context,
    po_id: str,
    quantities: tuple[str, ...],
    actual_cost: Optional[float],
    revision: Optional[int],
) -> None:
    """Record goods received against an Ordered PO."""
    received = dict(_parse_qty(s) for s in quantities)
    result = _run(ctx, lambda svc, actor: svc.receive(actor, po_id, received, actual_cost, revision))
    po = result.purchase_order
    click.echo(f"✓ {po.id} → {po.status}")
    for update in result.inventory_updates:
        click.echo(f"    {update.describe()}")
    click.echo(f"  Total {po.total_amount:.2f}   balance {po.po_balance:.2f}")


# --------------------------------------------------------------------
# batch
# --------------------------------------------------------------------

@cli.command()
@click.argument("operation", type=click.Choice(BATCH_OPERATIONS))
@click.argument("po_ids", nargs=-1, required=True)
@click.option("--value", default=None, type=click.Choice(SHIPPING_STATUSES),
              help="New shipping status (shipping_status only)")
@click.pass_context
def batch(ctx: click.Context, operation: str, po_ids: tuple[str, ...], value: Optional[str]) -> None:
    """Apply OPERATION to every PO in PO_IDS."""
    kwargs = {"value": value} if value else {}
    result = _run(ctx, lambda svc, actor: svc.batch(actor, po_ids, operation, **kwargs))
    click.echo(f"\n{operation}: {result.success_count} succeeded, {result.failed_count} failed")
    for err in result.errors:
        click.echo(f"  ✗ {err.id}: {err.message}")
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    cli()
