"""
Setup script for lbm_solver package.
"""

from setuptools import setup, find_packages

setup(
    name="lbm_solver",
    version="0.1.0",
    description="2D Lattice Boltzmann (D2Q9) fluid solver with BGK, TRT, regularized and KBC collisions",
    author="Andrey",
    packages=find_packages(include=["lbm_solver", "lbm_solver.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "numba>=0.56",
        "matplotlib>=3.5",
        "scipy>=1.7",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "black", "flake8"],
    },
)
