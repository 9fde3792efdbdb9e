from fastapi import APIRouter

from plotter.api.routes import project, render, utils

api_router = APIRouter()
api_router.include_router(project.router)
api_router.include_router(render.router)
api_router.include_router(utils.router)
