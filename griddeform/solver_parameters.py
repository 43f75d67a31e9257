cg = {
    "ksp_type": "cg",
    "pc_type": "bjacobi",
    "sub_pc_type": "ilu",
    "ksp_rtol": 1.0e-10,
    "ksp_atol": 1.0e-12,
    "ksp_max_it": 500,
}

mass = {
    "ksp_type": "cg",
    "pc_type": "jacobi",
    "ksp_rtol": 1.0e-12,
}
