from .errors import NotFound


def fetch(model_or_queryset, for_update=False, **lookup):
    """
    Load one row or raise the engine's NotFound

    Args:
        model_or_queryset: Model class or queryset to look in
        for_update: Lock the row (SELECT ... FOR UPDATE) for the rest of the unit of work
        **lookup: Field lookups identifying the row

    Returns:
        The model instance
    """
    if isinstance(model_or_queryset, type):
        queryset = model_or_queryset._default_manager.all()
    else:
        queryset = model_or_queryset
    if for_update:
        queryset = queryset.select_for_update()
    instance = queryset.filter(**lookup).first()
    if instance is None:
        name = str(queryset.model._meta.verbose_name)
        raise NotFound(f"{name.capitalize()} not found", entity=name, id=lookup.get('pk'))
    return instance
