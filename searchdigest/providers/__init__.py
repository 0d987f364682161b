# Внешние провайдеры (поиск по маркетплейсу)
