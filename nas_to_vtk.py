#!/usr/bin/env python3
"""
NAS to VTK Export Utility

Converts NASTRAN bulk data decks to VTK unstructured grid files (.vtu).

Volume elements keep their property grouping as cell zones, and CTRIA3/CQUAD4
boundary faces are written as patch cells after them. Every cell carries:
  CellKind / CellKindID   Volume (0) or Patch (1)
  Region / RegionID       zone or patch name, and its index
  PropertyID              NASTRAN property ID

Usage:
    python3 nas_to_vtk.py input.dat
    python3 nas_to_vtk.py input.dat output.vtu --format large
    python3 nas_to_vtk.py input.dat --no-patches

Options:
    --format         Field format: small (default), large or free
    --defaultNames   Ignore names from comments, always use patch_<k>/cellZone_<k>
    --no-patches     Write volume cells only
    --strict         Fail on duplicate GRID IDs instead of warning
    --show-issues    Display parsing warnings
    --export-stats   Export statistics to JSON file
    --verbose        Show detailed progress

Examples:
    # Free field deck, names from comments
    python3 nas_to_vtk.py engine.nas engine.vtu --format free

    # Generated names only
    python3 nas_to_vtk.py engine.nas --defaultNames
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

import numpy as np
from vtkmodules.vtkCommonCore import vtkPoints, vtkIntArray, vtkStringArray
from vtkmodules.vtkCommonDataModel import (
    vtkUnstructuredGrid, vtkTetra, vtkPyramid, vtkHexahedron, vtkTriangle, vtkQuad,
)
from vtkmodules.vtkIOXML import vtkXMLUnstructuredGridWriter
from vtkmodules.util.numpy_support import numpy_to_vtk

from nas_parser import (
    CellTopology, NASMesh, add_parser_arguments, parser_from_args,
    report_failure, setup_logging,
)


logger = logging.getLogger(__name__)

VTK_CELLS = {
    CellTopology.TETRA: vtkTetra,
    CellTopology.PYRAMID: vtkPyramid,
    CellTopology.HEXAHEDRON: vtkHexahedron,
    CellTopology.TRIANGLE: vtkTriangle,
    CellTopology.QUAD: vtkQuad,
}
CELL_KIND_IDS = {'Volume': 0, 'Patch': 1}


def _insert_cell(output: vtkUnstructuredGrid, topology: CellTopology, vertices) -> None:
    cell = VTK_CELLS[topology]()
    for j, v_idx in enumerate(vertices):
        cell.GetPointIds().SetId(j, int(v_idx))
    output.InsertNextCell(cell.GetCellType(), cell.GetPointIds())


def build_unstructured_grid(mesh: NASMesh, include_patches: bool = True) -> vtkUnstructuredGrid:
    """Create a VTK unstructured grid from an assembled mesh

    Args:
        mesh: Parser output
        include_patches: Also add boundary faces as triangle/quad cells

    Returns:
        Grid with volume cells first (read order), then patch faces in
        patch order
    """
    output = vtkUnstructuredGrid()
    n_faces = mesh.n_faces if include_patches else 0
    output.AllocateEstimate(len(mesh.cells) + n_faces, 8)

    points = vtkPoints()
    if len(mesh.points):
        points.SetData(numpy_to_vtk(np.ascontiguousarray(mesh.points, dtype=np.float64), deep=1))
    output.SetPoints(points)

    cell_kinds: List[str] = []
    regions: List[str] = []
    region_ids: List[int] = []
    property_ids: List[int] = []

    # Every cell belongs to exactly one zone
    zone_of = {}
    for zone_idx, zone in enumerate(mesh.zones):
        for cell_idx in zone.cells:
            zone_of[cell_idx] = zone_idx

    for cell_idx, shape in enumerate(mesh.cells):
        _insert_cell(output, shape.topology, shape.vertices)
        zone_idx = zone_of[cell_idx]
        cell_kinds.append('Volume')
        regions.append(mesh.zones[zone_idx].name)
        region_ids.append(zone_idx)
        property_ids.append(mesh.zones[zone_idx].property_id)

    if include_patches:
        for patch_idx, patch in enumerate(mesh.patches):
            for face in patch.faces:
                topology = CellTopology.TRIANGLE if len(face) == 3 else CellTopology.QUAD
                _insert_cell(output, topology, face)
                cell_kinds.append('Patch')
                regions.append(patch.name)
                region_ids.append(patch_idx)
                property_ids.append(patch.property_id)

    n_cells = len(cell_kinds)
    if n_cells > 0:
        def make_str_array(name, values):
            a = vtkStringArray()
            a.SetName(name)
            a.SetNumberOfComponents(1)
            a.SetNumberOfTuples(n_cells)
            for i, v in enumerate(values):
                a.SetValue(i, v)
            output.GetCellData().AddArray(a)

        def make_int_array(name, values):
            a = vtkIntArray()
            a.SetName(name)
            a.SetNumberOfComponents(1)
            a.SetNumberOfTuples(n_cells)
            for i, v in enumerate(values):
                a.SetValue(i, int(v))
            output.GetCellData().AddArray(a)

        make_str_array("CellKind", cell_kinds)
        make_int_array("CellKindID", [CELL_KIND_IDS[k] for k in cell_kinds])
        make_str_array("Region", regions)
        make_int_array("RegionID", region_ids)
        make_int_array("PropertyID", property_ids)

    logger.debug("Built grid: %d points, %d cells", output.GetNumberOfPoints(), n_cells)
    return output


def write_vtu(grid: vtkUnstructuredGrid, out_path) -> str:
    """Write a grid as XML .vtu; returns the path written"""
    w = vtkXMLUnstructuredGridWriter()
    w.SetFileName(str(out_path))
    w.SetCompressorTypeToZLib()
    w.SetInputData(grid)
    if w.Write() == 0:
        raise RuntimeError("Failed to write VTU: %s" % out_path)
    return str(out_path)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Convert a NASTRAN bulk data deck to a VTK unstructured grid (.vtu)")
    ap.add_argument('input', help='Path to input bulk data deck')
    ap.add_argument('output', nargs='?', default=None,
                    help='Output .vtu path (default: alongside input)')
    add_parser_arguments(ap)
    ap.add_argument('--no-patches', dest='include_patches', action='store_false',
                    help='Write volume cells only')
    args = ap.parse_args(argv)
    setup_logging(args.verbose)

    output_file = args.output or str(Path(args.input).with_suffix('.vtu'))

    print(f"NAS to VTK Export")
    print(f"="*70)
    print(f"Input:  {args.input}")
    print(f"Output: {output_file}")
    print(f"Format: {args.format}")
    print(f"Mode:   {'Volume + Patches' if args.include_patches else 'Volume only'}")
    print()

    parser = parser_from_args(args)
    try:
        mesh = parser.parse()
    except KeyboardInterrupt:
        print(f"\n⏹️  Export interrupted by user")
        return 130
    except Exception as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        return report_failure(e, parser, args.show_issues)

    if args.show_issues:
        parser.print_parse_issues()
    parser.print_concise_report()

    try:
        grid = build_unstructured_grid(mesh, include_patches=args.include_patches)
        write_vtu(grid, output_file)
    except Exception as e:
        print(f"\nError during export: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 5

    if args.export_stats:
        try:
            parser.export_stats(args.export_stats)
        except OSError as e:
            print(f"Warning: Could not export statistics: {e}")

    print("Export complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
