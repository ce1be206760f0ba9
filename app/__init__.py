# -*- coding: utf-8 -*-
"""
backend/app/__init__.py

Paquete principal 'app' del backend de compra de votos.

Permite que los módulos internos se importen como 'app.*'
cuando la raíz del repositorio está en PYTHONPATH.

Autor: Banter Backend
Fecha: 2026-02-18
"""

# Fin del archivo backend/app/__init__.py
