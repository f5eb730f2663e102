"""
Floor-plan engine services.

Modules:
    entities: closed CAD entity variant and the coercion boundary
    cad_ingest: DXF/DWG decoding into a CadDocument
    bounds / transforms: bounding boxes and the named coordinate transforms
    tessellation: entity -> flat line segments
    zones / adjacency: the per-floor zone and device model
    scene: 3D scene graph reconstruction
    render_bridge: adapters to the 2D surface and 3D viewport
    structure: walls, openings and inferred rooms as zone suggestions
    scheduling: generation tokens and rebuild coalescing
    session: the editing-session facade
    conversion / processor: DWG conversion and upload processing
"""
