from setuptools import setup

setup(
    name = 'pyg1',
    version = '0.1.0',
    description = 'G1-continuous multipatch discretizations for Isogeometric Analysis',
    long_description = 'pyg1 builds global G1-continuous bases over planar multipatch domains\nand solves the reduced linear systems.',

    classifiers=[
        'Programming Language :: Python :: 3',
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Topic :: Scientific/Engineering :: Physics',
        'License :: Free For Educational Use',
    ],
    packages = ['pyg1'],

    python_requires = '>=3.6',
    install_requires = [
        'numpy>=1.11',
        'scipy',
        'networkx',
        'matplotlib',
    ],
    extras_require = {
        'test': ['pytest'],
    },
)
