"""JavaScript evaluated inside the page through Playwright.

Each snippet is read-only apart from the observer install/teardown pair and
returns JSON-serialisable data that the Python side turns into ``DomNode``
trees or change records.

Element captures are flat: ``nodes`` lists element records parent-first, each
pointing at its parent by index (``-1`` for none), and ``matches`` holds the
indexes of the requested elements. Ancestors recorded only for their styles
carry ``context: true`` and get no children. Keeping the payload flat keeps
deeply nested documents within the driver's serialisation limits.
"""

# Shared helpers, inlined into each snippet (evaluate() takes one function).
_HELPERS = """
    const styleOf = (el) => {
        const s = window.getComputedStyle(el);
        return { display: s.display, visibility: s.visibility, opacity: s.opacity };
    };
    const attributesOf = (el) =>
        Object.fromEntries(Array.from(el.attributes).map((a) => [a.name, a.value]));
    const rectOf = (el) => {
        const rect = el.getBoundingClientRect();
        return { x: rect.x, y: rect.y, width: rect.width, height: rect.height };
    };
    const nodes = [];
    const record = (el, parent, extra) => {
        nodes.push(Object.assign({
            tag: el.tagName.toLowerCase(),
            attributes: attributesOf(el),
            style: styleOf(el),
            parent,
        }, extra));
        return nodes.length - 1;
    };
    const recordAncestors = (el) => {
        const chain = [];
        for (let current = el.parentElement; current; current = current.parentElement) {
            chain.unshift(current);
        }
        let parent = -1;
        for (const ancestor of chain) {
            parent = record(ancestor, parent, { context: true });
        }
        return parent;
    };
    const viewportOf = () => ({
        width: window.innerWidth || document.documentElement.clientWidth,
        height: window.innerHeight || document.documentElement.clientHeight,
    });
"""

# Captures the document element (no selector) or every top-level match of a
# selector. Only leaf elements carry text to keep the payload small.
CAPTURE_TREE = """
({ selector }) => {
""" + _HELPERS + """
    const leafText = (el) => el.children.length === 0 ? (el.textContent || '').trim() : null;
    const captureSubtree = (root) => {
        const rootIndex = record(root, recordAncestors(root), { text: leafText(root) });
        const pending = [[root, rootIndex]];
        while (pending.length > 0) {
            const [el, index] = pending.pop();
            for (const child of el.children) {
                pending.push([child, record(child, index, { text: leafText(child) })]);
            }
        }
        return rootIndex;
    };
    if (!selector) {
        return { nodes, matches: [captureSubtree(document.documentElement)] };
    }
    const found = Array.from(document.querySelectorAll(selector));
    const topLevel = found.filter(
        (el) => !el.parentElement || !el.parentElement.closest(selector)
    );
    const matches = topLevel.map(captureSubtree);
    return { nodes, matches };
}
"""

IS_ELEMENT = "(node) => node.nodeType === Node.ELEMENT_NODE"

# Snapshot of a single element with its geometry, ancestor styles and the
# viewport size, for the Visibility Resolver.
SNAPSHOT_ELEMENT = """
(el) => {
""" + _HELPERS + """
    const index = record(el, recordAncestors(el), {
        text: (el.textContent || '').trim(),
        rect: rectOf(el),
        connected: el.isConnected,
    });
    return { nodes, matches: [index], viewport: viewportOf() };
}
"""

# Form controls and widget roles with their kind, label, state and enabled
# flag. Each entry of ``controls`` belongs to the match at the same position.
INTERACTIVE_ELEMENTS = """
(selector) => {
""" + _HELPERS + """
    const kindOf = (el) => {
        const tag = el.tagName.toLowerCase();
        const type = (el.getAttribute('type') || '').toLowerCase();
        if (tag === 'button' || (tag === 'input' && type === 'button')) return 'button';
        if (tag === 'input') return type || 'text';
        if (tag === 'textarea' || tag === 'select') return tag;
        return el.getAttribute('role') || 'button';
    };
    const labelOf = (el) => {
        if (el.labels && el.labels.length > 0) {
            const text = (el.labels[0].textContent || '').trim();
            if (text) return text;
        }
        const text = el.getAttribute('aria-label')
            || el.getAttribute('placeholder')
            || el.getAttribute('title')
            || (el.tagName.toLowerCase() === 'select' ? '' : (el.textContent || '').trim());
        return text || null;
    };
    const stateOf = (el, kind) => {
        if (el instanceof HTMLInputElement && (kind === 'checkbox' || kind === 'radio')) {
            return { checked: el.checked };
        }
        if (el instanceof HTMLSelectElement) {
            return {
                value: el.value,
                selected: Array.from(el.selectedOptions).map((o) => (o.textContent || '').trim()),
            };
        }
        if (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) {
            return { value: el.value };
        }
        const checked = el.getAttribute('aria-checked') || el.getAttribute('aria-pressed');
        return checked === null ? {} : { checked: checked === 'true' };
    };
    const matches = [];
    const controls = [];
    for (const el of document.querySelectorAll(selector)) {
        const kind = kindOf(el);
        matches.push(record(el, recordAncestors(el), {
            text: (el.textContent || '').trim(),
            rect: rectOf(el),
        }));
        controls.push({
            type: kind,
            label: labelOf(el),
            state: stateOf(el, kind),
            enabled: !el.matches(':disabled') && el.getAttribute('aria-disabled') !== 'true',
        });
    }
    return { nodes, matches, controls, viewport: viewportOf() };
}
"""

# Text blocks with their geometry plus whether the document extends above or
# below the viewport. Links inside another block are left to that block.
VISIBLE_CONTENT = """
() => {
    const blockSelector = 'p, h1, h2, h3, h4, h5, h6, li';
    const blocks = [];
    for (const el of document.querySelectorAll(blockSelector + ', a')) {
        const tag = el.tagName.toLowerCase();
        if (tag === 'a' && el.parentElement && el.parentElement.closest(blockSelector)) {
            continue;
        }
        const rect = el.getBoundingClientRect();
        blocks.push({
            tag,
            text: (el.textContent || '').trim(),
            href: tag === 'a' ? el.href || null : null,
            rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
        });
    }
    const scrollHeight = document.documentElement.scrollHeight;
    return {
        blocks,
        viewport: { width: window.innerWidth, height: window.innerHeight },
        hasAbove: window.scrollY > 0,
        hasBelow: window.scrollY + window.innerHeight < scrollHeight,
    };
}
"""

# Installs a MutationObserver that relays each batch to the exposed binding
# as a list of plain records, in the order the engine reports them.
INSTALL_OBSERVER = """
({ bindingName, observerKey, rootSelector, init }) => {
    const root = document.querySelector(rootSelector);
    if (!root) {
        throw new Error(`Observer root not found: ${rootSelector}`);
    }
    const describe = (el) => ({
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        classes: Array.from(el.classList),
    });
    const observer = new MutationObserver((mutations) => {
        const records = [];
        for (const m of mutations) {
            if (m.type === 'attributes' && m.target instanceof Element) {
                const target = describe(m.target);
                target.attributes = Object.fromEntries(
                    Array.from(m.target.attributes).map((a) => [a.name, a.value])
                );
                records.push({
                    type: 'attributes',
                    target,
                    attributeName: m.attributeName,
                    oldValue: m.oldValue,
                    newValue: m.attributeName ? m.target.getAttribute(m.attributeName) : null,
                });
            } else if (m.type === 'childList') {
                records.push({
                    type: 'childList',
                    added: Array.from(m.addedNodes).filter((n) => n instanceof Element).map(describe),
                    removed: Array.from(m.removedNodes).filter((n) => n instanceof Element).map(describe),
                });
            }
        }
        if (records.length > 0 && typeof window[bindingName] === 'function') {
            window[bindingName](records);
        }
    });
    observer.observe(root, init);
    window[observerKey] = observer;
    return true;
}
"""

TEARDOWN_OBSERVER = """
({ bindingName, observerKey }) => {
    const observer = window[observerKey];
    if (observer) {
        observer.disconnect();
    }
    delete window[observerKey];
    try {
        delete window[bindingName];
    } catch (e) {
        window[bindingName] = undefined;
    }
    return true;
}
"""

PAGE_DESCRIPTION = """
() => {
    const meta = document.querySelector('meta[name="description"]');
    return meta ? (meta.getAttribute('content') || '').trim() : '';
}
"""
