from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from molstruct.config import load_settings
from molstruct.core.exceptions import ChainNotFoundError
from molstruct.core.logging_utils import get_logger, set_level
from molstruct.parsers.dataset import StructureDataset, auto_parser
from molstruct.structure.structure import Structure
from molstruct.writers.base import StructureWriter, WriterOptions
from molstruct.writers.mmcif import CIFWriter
from molstruct.writers.pdb_format import PDBWriter

logger = get_logger(__name__)
app = typer.Typer(no_args_is_help=True)

_WRITERS: dict[str, type[StructureWriter]] = {"pdb": PDBWriter, "mmcif": CIFWriter}


@app.callback()
def main() -> None:
    """Read, inspect and convert PDB / mmCIF structure files."""
    set_level(load_settings().log_level)


def _load(path: Path) -> Structure:
    try:
        return auto_parser(path).parse(path)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _stem(path: Path) -> str:
    return path.name.split(".")[0]


@app.command("convert")
def convert(
    inputs: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="PDB or mmCIF files."),
    to: Optional[str] = typer.Option(None, help="Output format: pdb or mmcif (default: MOLSTRUCT_DEFAULT_FORMAT)."),
    out_dir: Path = typer.Option(Path("."), help="Directory for converted files."),
    header: Optional[bool] = typer.Option(None, "--header/--no-header", help="Write header records."),
    conect: Optional[bool] = typer.Option(None, "--conect/--no-conect", help="Write bonds (CONECT / struct_conn)."),
):
    settings = load_settings()
    fmt = (to or settings.default_format).lower()
    if fmt not in _WRITERS:
        raise typer.BadParameter(f"Unknown format '{fmt}'. Supported: {sorted(_WRITERS)}")
    options = WriterOptions(
        header=settings.write_header if header is None else header,
        conect=settings.write_conect if conect is None else conect,
    )
    writer = _WRITERS[fmt](options)
    ext = writer.extensions()[0]

    try:
        dataset = StructureDataset(inputs)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    items = dataset.items(skip_errors=True)
    if len(dataset) > 1:
        from tqdm import tqdm
        items = tqdm(items, total=len(dataset), desc=f"Converting to {fmt}", unit="file")

    for path, structure in items:
        target = writer.write_file(structure, out_dir / f"{_stem(path)}{ext}")
        logger.info("Wrote %s (%d models, %d chains)", target, structure.nr_models(), structure.size())
        typer.echo(str(target))

    for path, error in dataset.failures.items():
        typer.echo(f"Error: could not read {path}: {error}", err=True)
    if dataset.failures:
        raise typer.Exit(code=1)


@app.command("info")
def info(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDB or mmCIF file."),
):
    s = _load(path)
    typer.echo(f"{s.pdb_code or _stem(path)}  models={s.nr_models()}  nmr={s.is_nmr()}  "
               f"crystallographic={s.is_crystallographic()}")
    if s.pdb_header.title:
        typer.echo(f"title: {s.pdb_header.title}")
    for e in s.entity_infos:
        typer.echo(f"entity {e.id} {e.type.value}: chains {','.join(e.chain_ids)} {e.description}".rstrip())
    for c in s.get_chains():
        kind = "polymer" if c.is_polymer else "non-polymer"
        typer.echo(f"chain asym={c.asym_id} auth={c.auth_id} {kind} groups={len(c)} entity={c.entity_id}")


@app.command("chain")
def chain(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDB or mmCIF file."),
    auth_id: str = typer.Argument(..., help="Author (PDB) chain id."),
    model: int = typer.Option(0, help="Model index (0-based)."),
    asym: bool = typer.Option(False, help="Treat the id as an asym (mmCIF label) id."),
):
    s = _load(path)
    try:
        c = s.get_chain(auth_id, model) if asym else s.find_chain(auth_id, model)
    except (ChainNotFoundError, IndexError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    kind = "polymer" if c.is_polymer else "non-polymer"
    typer.echo(f"asym={c.asym_id} auth={c.auth_id} {kind} groups={len(c)} atoms={len(c.atoms)}")
    if c.sequence:
        typer.echo(c.sequence)
