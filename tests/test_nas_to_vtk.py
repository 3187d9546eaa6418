"""
Tests for the VTK export: cell layout, cell data arrays, the .vtu writer and
the nas_to_vtk command line.
"""

import io
import os
import sys
import json
import subprocess

import numpy as np
import pytest
from vtkmodules.vtkCommonDataModel import (
    VTK_HEXAHEDRON, VTK_PYRAMID, VTK_QUAD, VTK_TETRA, VTK_TRIANGLE,
)
from vtkmodules.vtkIOXML import vtkXMLUnstructuredGridReader
from vtkmodules.util.numpy_support import vtk_to_numpy

from nas_parser import FieldFormat, NASParser
from nas_to_vtk import build_unstructured_grid, write_vtu
from deck_builders import EXPECTED_POINTS, build_mixed_deck

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SCRIPT = os.path.join(ROOT, "nas_to_vtk.py")


@pytest.fixture
def mixed_mesh():
    return NASParser().parse_stream(io.StringIO(build_mixed_deck()))


def cell_array(grid, name):
    array = grid.GetCellData().GetAbstractArray(name)
    assert array is not None, name
    return [array.GetValue(i) for i in range(array.GetNumberOfTuples())]


def cell_types(grid):
    return [grid.GetCellType(i) for i in range(grid.GetNumberOfCells())]


def test_grid_layout(mixed_mesh):
    grid = build_unstructured_grid(mixed_mesh)
    assert grid.GetNumberOfPoints() == 9
    assert grid.GetNumberOfCells() == 6
    assert cell_types(grid) == [
        VTK_HEXAHEDRON, VTK_PYRAMID, VTK_TETRA, VTK_TRIANGLE, VTK_TRIANGLE, VTK_QUAD,
    ]
    np.testing.assert_allclose(vtk_to_numpy(grid.GetPoints().GetData()), EXPECTED_POINTS)

    ids = grid.GetCell(1).GetPointIds()
    assert [ids.GetId(j) for j in range(ids.GetNumberOfIds())] == [4, 5, 6, 7, 8]


def test_grid_cell_data(mixed_mesh):
    grid = build_unstructured_grid(mixed_mesh)
    assert cell_array(grid, "CellKind") == ["Volume"] * 3 + ["Patch"] * 3
    assert cell_array(grid, "CellKindID") == [0, 0, 0, 1, 1, 1]
    assert cell_array(grid, "Region") == [
        "fluid", "cellZone_0", "fluid", "inlet", "inlet", "patch_0",
    ]
    assert cell_array(grid, "RegionID") == [0, 1, 0, 0, 0, 1]
    assert cell_array(grid, "PropertyID") == [1, 2, 1, 10, 10, 11]


def test_volume_only(mixed_mesh):
    grid = build_unstructured_grid(mixed_mesh, include_patches=False)
    assert cell_types(grid) == [VTK_HEXAHEDRON, VTK_PYRAMID, VTK_TETRA]
    assert cell_array(grid, "CellKind") == ["Volume"] * 3


def test_empty_mesh_has_no_cell_arrays():
    deck = "SOL 101\nCEND\nBEGIN BULK\nENDDATA\n"
    grid = build_unstructured_grid(NASParser().parse_stream(io.StringIO(deck)))
    assert grid.GetNumberOfPoints() == 0
    assert grid.GetNumberOfCells() == 0
    assert grid.GetCellData().GetNumberOfArrays() == 0


def test_write_and_read_back(mixed_mesh, tmp_path):
    out = tmp_path / "mesh.vtu"
    assert write_vtu(build_unstructured_grid(mixed_mesh), out) == str(out)
    assert out.exists()

    reader = vtkXMLUnstructuredGridReader()
    reader.SetFileName(str(out))
    reader.Update()
    grid = reader.GetOutput()
    assert grid.GetNumberOfPoints() == 9
    assert grid.GetNumberOfCells() == 6
    assert cell_array(grid, "Region")[-1] == "patch_0"
    assert cell_array(grid, "PropertyID") == [1, 2, 1, 10, 10, 11]


def run_cli(*args):
    return subprocess.run(
        [sys.executable, SCRIPT, *args],
        capture_output=True, text=True, encoding="utf-8", timeout=120,
        env={**os.environ, "PYTHONIOENCODING": "utf-8"},
    )


def test_cli_converts_deck(tmp_path):
    deck = tmp_path / "engine.nas"
    deck.write_text(build_mixed_deck(FieldFormat.FREE))
    stats = tmp_path / "stats.json"

    result = run_cli(str(deck), "--format", "free", "--export-stats", str(stats))
    assert result.returncode == 0, result.stdout + result.stderr
    assert "Export complete!" in result.stdout
    assert "inlet" in result.stdout
    assert (tmp_path / "engine.vtu").exists()
    assert json.loads(stats.read_text())['mesh']['cells'] == 3


def test_cli_explicit_output_and_default_names(tmp_path):
    deck = tmp_path / "engine.dat"
    deck.write_text(build_mixed_deck(FieldFormat.LARGE))
    out = tmp_path / "named.vtu"

    result = run_cli(str(deck), str(out), "--format", "large", "--defaultNames", "--no-patches")
    assert result.returncode == 0, result.stdout + result.stderr
    assert "Volume only" in result.stdout
    assert "fluid" not in result.stdout

    reader = vtkXMLUnstructuredGridReader()
    reader.SetFileName(str(out))
    reader.Update()
    assert reader.GetOutput().GetNumberOfCells() == 3


@pytest.mark.parametrize("deck, code", [
    ("SOL 101\nCEND\nBEGIN BULK\nMAT1    1       2.1+11\nENDDATA\n", 2),
    ("SOL 101\nCEND\nBEGIN BULK\n", 3),
    ("SOL 101\nCEND\nENDDATA\n", 4),
])
def test_cli_failure_exit_codes(tmp_path, deck, code):
    path = tmp_path / "bad.dat"
    path.write_text(deck)
    result = run_cli(str(path))
    assert result.returncode == code
    assert not (tmp_path / "bad.vtu").exists()


def test_cli_missing_file(tmp_path):
    result = run_cli(str(tmp_path / "missing.dat"))
    assert result.returncode == 1
    assert "File not found" in result.stdout
