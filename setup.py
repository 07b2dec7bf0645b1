from setuptools import find_packages, setup

package_name = "lidar_submap"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test", "test.*"]),
    package_data={package_name: ["config/*.yaml"]},
    install_requires=["setuptools", "numpy", "scipy", "open3d", "pydantic>=2", "pyyaml", "rerun-sdk"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.9",
    zip_safe=False,
    description="Local submap core for incremental lidar mapping: carving, voxel layers, FPFH features",
    license="Apache-2.0",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            "lidar_submap_params = lidar_submap.tools.print_params:main",
        ],
    },
)
